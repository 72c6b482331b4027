from flask_sqlalchemy import SQLAlchemy
from flask_migrate import Migrate
from flask_login import LoginManager
from flask_limiter import Limiter
from flask_limiter.util import get_remote_address

# ======================
# Database
# ======================
db = SQLAlchemy()
migrate = Migrate()

# ======================
# Login Manager
# ======================
# Identity comes from the API gateway (X-User-Id header); there is no login page.
login_manager = LoginManager()


@login_manager.request_loader
def load_user_from_request(request):
    from invoicing.models import User

    user_id = (request.headers.get("X-User-Id") or "").strip()
    if not user_id:
        return None
    return User.query.filter_by(id=user_id, is_active=True).first()


# ======================
# Rate Limiter
# ======================
# Storage comes from RATELIMIT_STORAGE_URI (Redis in production, memory locally).
limiter = Limiter(
    key_func=get_remote_address,
    default_limits=[],
)
