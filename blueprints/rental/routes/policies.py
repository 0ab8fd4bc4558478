"""
Host policy API routes.
Read and update the caller's auto-approval policy.
"""

from flask_login import login_required, current_user

from models.host_policy import ensure_host_policy, update_host_policy
from utils.api_response import api_success
from utils.decorators import role_required
from utils.validators import get_json_body


def register_routes(bp):
    """Register host policy routes on the blueprint."""

    @bp.route('/hosts/me/policy')
    @login_required
    @role_required('host', 'admin')
    def get_my_policy():
        """Get the caller's policy, creating it with defaults on first use."""
        return api_success(data=ensure_host_policy(current_user.id))

    @bp.route('/hosts/me/policy', methods=['PUT'])
    @login_required
    @role_required('host', 'admin')
    def update_my_policy():
        """
        Update the caller's policy.

        Request body (any subset):
            auto_approval_enabled: bool
            max_auto_approve_amount: number
            min_advance_hours: int
            require_verification: bool
            min_renter_score: int 0-100
        """
        data = get_json_body()
        policy = update_host_policy(current_user.id, data)
        return api_success(data=policy, message='Policy updated')
