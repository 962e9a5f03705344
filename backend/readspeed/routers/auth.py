from datetime import datetime, timedelta, timezone
from typing import Optional

from fastapi import APIRouter, Depends
from fastapi.security import OAuth2PasswordBearer
from jose import JWTError, jwt
from passlib.context import CryptContext
from pydantic import BaseModel
import logging

from ..settings import settings
from ..errors import AuthError, PersistenceError, ValidationError
from ..store import MemoryStore, Store, UserRecord, find_user, get_fallback_store, get_store

router = APIRouter(prefix="/auth", tags=["auth"])

logger = logging.getLogger(__name__)
logging.getLogger('passlib').setLevel(logging.ERROR)
pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")
oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/auth/signin", auto_error=False)

MIN_PASSWORD_LENGTH = 6


class Credentials(BaseModel):
	email: Optional[str] = None
	password: Optional[str] = None


class CurrentUser(BaseModel):
	user_id: str


def hash_password(password: str) -> str:
	# bcrypt only looks at the first 72 bytes
	return pwd_context.hash(password.encode('utf-8')[:72].decode('utf-8', errors='ignore'))


def verify_password(plain_password: str, hashed_password: str) -> bool:
	return pwd_context.verify(plain_password.encode('utf-8')[:72].decode('utf-8', errors='ignore'), hashed_password)


def _resolve_expiry(expires_delta: Optional[timedelta]) -> datetime:
	"""Return the token expiry timestamp, 7 days out unless configured otherwise."""
	delta = expires_delta
	if delta is None:
		minutes = settings.access_token_expire_minutes
		delta = timedelta(minutes=minutes) if minutes > 0 else timedelta(days=7)
	now = datetime.now(timezone.utc)
	try:
		return now + delta
	except OverflowError:
		# Cap at far future but within datetime bounds
		return datetime.max.replace(tzinfo=timezone.utc)


def create_access_token(data: dict, expires_delta: Optional[timedelta] = None) -> str:
	to_encode = data.copy()
	expire = _resolve_expiry(expires_delta)
	to_encode.update({"exp": expire})
	encoded_jwt = jwt.encode(to_encode, settings.jwt_secret_key, algorithm=settings.jwt_algorithm)
	return encoded_jwt


def get_current_user(token: Optional[str] = Depends(oauth2_scheme)) -> CurrentUser:
	if not token:
		raise AuthError("No token provided, authorization denied")
	try:
		payload = jwt.decode(token, settings.jwt_secret_key, algorithms=[settings.jwt_algorithm])
	except JWTError:
		raise AuthError("Invalid token, authorization denied")
	user_id = payload.get("sub")
	if not user_id:
		raise AuthError("Invalid token, authorization denied")
	return CurrentUser(user_id=str(user_id))


def _session_payload(user: UserRecord) -> dict:
	return {"token": create_access_token({"sub": user.id}), "user": user.public()}


def _require_credentials(req: Credentials) -> tuple[str, str]:
	email = (req.email or "").strip()
	password = req.password or ""
	if not email or not password:
		raise ValidationError("Email and password are required")
	return email, password


@router.post("/signup", status_code=201)
async def signup(req: Credentials, store: Store = Depends(get_store), fallback: MemoryStore = Depends(get_fallback_store)):
	email, password = _require_credentials(req)
	if len(password) < MIN_PASSWORD_LENGTH:
		raise ValidationError(f"Password must be at least {MIN_PASSWORD_LENGTH} characters")
	password_hash = hash_password(password)
	holder: Store = store
	try:
		user = store.create_user(email, password_hash, settings.starting_credits)
	except PersistenceError as exc:
		if store is fallback:
			raise
		logger.warning("Signup in %s store failed, using in-memory fallback: %s", store.name, exc)
		holder = fallback
		user = fallback.create_user(email, password_hash, settings.starting_credits)
	logger.info("User %s signed up (%s store)", user.id, holder.name)
	return _session_payload(user)


@router.post("/signin")
async def signin(req: Credentials, store: Store = Depends(get_store), fallback: MemoryStore = Depends(get_fallback_store)):
	email, password = _require_credentials(req)
	try:
		user = store.get_user_by_email(email)
	except PersistenceError as exc:
		logger.warning("Signin lookup in %s store failed, using in-memory fallback: %s", store.name, exc)
		user = None
	if user is None and store is not fallback:
		user = fallback.get_user_by_email(email)
	if user is None or not verify_password(password, user.password_hash):
		raise ValidationError("Invalid email or password")
	return _session_payload(user)


@router.get("/me")
async def me(current: CurrentUser = Depends(get_current_user), store: Store = Depends(get_store), fallback: MemoryStore = Depends(get_fallback_store)):
	user, _ = find_user(store, fallback, current.user_id)
	if user is None:
		raise AuthError("User not found")
	return user.public()
