"""
Rental blueprint initialization.
Assembles the reservation engine's JSON routes into one blueprint.

Individual route logic is in:
- routes/vehicles.py - Availability checks, search and month calendar
- routes/blocks.py - Manual and recurring availability blocks
- routes/reservations.py - Reservation create, read and transitions
- routes/policies.py - Host auto-approval policy
"""

from flask import Blueprint

# Create the rental API blueprint
rental_bp = Blueprint('rental', __name__)

# Import and register routes from submodules
from blueprints.rental.routes import vehicles
from blueprints.rental.routes import blocks
from blueprints.rental.routes import reservations
from blueprints.rental.routes import policies

# Register all route functions on the blueprint
vehicles.register_routes(rental_bp)
blocks.register_routes(rental_bp)
reservations.register_routes(rental_bp)
policies.register_routes(rental_bp)
