"""
EcoPlate Backend — API Routes Package
======================================

Route Inventory:
    - auth.py:           /api/v1/auth            register, login, profile
    - myfridge.py:       /api/v1/myfridge        fridge products, consume
    - consumption.py:    /api/v1/consumption     photo-assisted meal logging
    - gamification.py:   /api/v1/gamification    points, leaderboard, badges
    - dashboard.py:      /api/v1/dashboard       impact charts
    - marketplace.py:    /api/v1/marketplace     listings and reservations
    - conversations.py:  /api/v1/conversations   buyer/seller messaging
                         /api/v1/messages
    - upload.py:         /api/v1/upload          listing images
                         /uploads                stored files
    - maps.py:           /api/v1/maps            Google Places proxy
    - health.py:         /health

Routes stay thin: parse the request, call a service, shape the response.
"""
