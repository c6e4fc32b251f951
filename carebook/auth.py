import logging
from datetime import datetime, timezone

from fastapi import Depends, HTTPException
from fastapi.concurrency import run_in_threadpool
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from firebase_admin import auth as firebase_auth
from sqlalchemy.orm import Session, joinedload

from .database import get_db
from .firebase import get_firebase_app
from .models import ROLE_PARENT, User

logger = logging.getLogger(__name__)

security = HTTPBearer(auto_error=False)


async def verify_firebase_token(token: str) -> dict:
    """Verify a Firebase ID token (signature, audience, issuer, expiry) and return its claims"""
    try:
        return await run_in_threadpool(firebase_auth.verify_id_token, token, get_firebase_app())
    except firebase_auth.ExpiredIdTokenError as e:
        raise HTTPException(
            status_code=401,
            detail="Token has expired. Please refresh your session.",
            headers={"X-Token-Expired": "true"},
        ) from e
    except (firebase_auth.InvalidIdTokenError, ValueError) as e:
        logger.warning(f"⚠️ Invalid Firebase token: {e}")
        raise HTTPException(status_code=401, detail="Invalid token") from e
    except Exception as e:
        logger.error(f"❌ Token verification failed: {type(e).__name__}: {e}")
        raise HTTPException(status_code=401, detail="Token verification failed") from e


async def get_current_user(
    credentials: HTTPAuthorizationCredentials = Depends(security),
    db: Session = Depends(get_db),
) -> User:
    """Get current user from Firebase token"""

    if not credentials:
        raise HTTPException(
            status_code=401,
            detail="Not authenticated. Please provide a valid Bearer token in the Authorization header.",
        )

    decoded_token = await verify_firebase_token(credentials.credentials)

    # Firebase ID tokens use 'sub' as the user ID claim
    firebase_uid = decoded_token.get("uid") or decoded_token.get("sub")
    if not firebase_uid:
        logger.error(f"❌ Token missing user ID claim. Available claims: {list(decoded_token.keys())}")
        raise HTTPException(status_code=401, detail="Invalid token claims")

    user = (
        db.query(User)
        .options(joinedload(User.provider_profile))
        .filter(User.firebase_uid == firebase_uid)
        .first()
    )

    if not user:
        # First sign-in after phone verification; accounts start as parents
        phone_number = decoded_token.get("phone_number")
        if not phone_number:
            raise HTTPException(status_code=403, detail="Phone number verification required")

        user = User(
            firebase_uid=firebase_uid,
            phone_number=phone_number,
            name=decoded_token.get("name", ""),
            email=decoded_token.get("email"),
            role=ROLE_PARENT,
            is_verified=True,
            last_login=datetime.now(timezone.utc).replace(tzinfo=None),
        )
        db.add(user)
        db.commit()
        db.refresh(user)
        logger.info(f"✅ Registered new user {user.id} from Firebase UID")

    if user.is_deactivated:
        raise HTTPException(status_code=403, detail="Account is deactivated")

    return user
