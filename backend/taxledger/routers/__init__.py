# API Routers
