from auth.models import User, Role
from auth.security import verify_password, get_password_hash, create_access_token
from auth.dependencies import get_current_user, get_current_active_user, require_admin
