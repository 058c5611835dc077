import logging
from datetime import datetime

from werkzeug.security import check_password_hash, generate_password_hash

from database import db
from database.models import User as DBUser

logger = logging.getLogger(__name__)


def register_user(email: str, password: str, display_name: str = None, is_admin: bool = False) -> bool:
    logger.info("Entering register_user function")

    # Input validation
    if not email or not isinstance(email, str):
        logger.error(f"Invalid email provided: {email}")
        return False

    if not password or not isinstance(password, str):
        logger.error(f"Invalid password provided for user: {email}")
        return False

    email = email.strip().lower()
    if '@' not in email:
        logger.warning(f"Email format appears invalid: {email}")

    try:
        if db.session.get(DBUser, email) is not None:
            logger.warning(f"User already exists: {email}")
            return False

        user = DBUser(
            id=email,
            password_hash=generate_password_hash(password),
            display_name=display_name or email.split("@")[0],
            is_admin=is_admin,
        )
        db.session.add(user)
        db.session.commit()
        logger.info(f"Registered user: {email}")
        return True
    except Exception as e:
        db.session.rollback()
        logger.error(f"Error registering user {email}: {e}", exc_info=True)
        raise


def verify_user(email: str, password: str) -> bool:
    """
    Verifies user credentials against the stored werkzeug password hash.
    Banned users never verify.
    """
    if not email or not isinstance(email, str):
        logger.error(f"Invalid email for verification: {email}")
        return False

    if not password or not isinstance(password, str):
        logger.error(f"Invalid password for verification: {email}")
        return False

    email = email.strip().lower()
    user = db.session.get(DBUser, email)
    if user is None or not user.password_hash:
        logger.warning(f"Login failed, unknown user: {email}")
        return False
    if user.is_banned:
        logger.warning(f"Login refused for banned user: {email}")
        return False
    if not check_password_hash(user.password_hash, password):
        logger.warning(f"Login failed, wrong password: {email}")
        return False

    user.last_login = datetime.utcnow()
    db.session.commit()
    logger.info(f"Password verification successful: {email}")
    return True
