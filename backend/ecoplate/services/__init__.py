# Services package init
"""
EcoPlate Backend — Services Layer
==================================

What:  Business logic between routes (HTTP) and the database.
How:   Each module exposes a class plus a module-level singleton
       (e.g. `marketplace_service`); routes call the singleton and pass in
       the request's AsyncSession.

Service Inventory:
    - auth_service:          registration, login, profile updates
    - product_service:       fridge CRUD and consume/waste/share/sell logging
    - user_points:           points rows, streak maths, action names
    - gamification_service:  award_points, metrics, leaderboard
    - badge_service:         badge catalogue, awards and progress
    - consumption_service:   meal logging and waste metrics
    - dashboard_service:     period charts and impact equivalence
    - marketplace_service:   listings, reservations, sales, nearby search
    - conversation_service:  buyer/seller messaging
    - image_upload_service:  listing image validation and storage
    - maps_service:          Google Places proxy
    - VisionService (llm_base) / gemini_service: food recognition from photos
"""
