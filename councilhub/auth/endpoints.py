from fastapi import APIRouter, Depends, HTTPException, Request, status
from fastapi.security import OAuth2PasswordRequestForm
from jose import JWTError, jwt
from sqlalchemy.ext.asyncio import AsyncSession

from councilhub.auth import security
from councilhub.auth.dependencies import get_current_user_db
from councilhub.auth.schemas import RefreshIn, RegisterIn, RegisterOut, ResendIn, Token
from councilhub.db.dependencies import get_db_session
from councilhub.integrations.endpoints import get_recaptcha_integration
from councilhub.integrations.recaptcha import RecaptchaIntegration
from councilhub.mail.base import Mailer, MessageCollector
from councilhub.mail.dependencies import get_mailer, get_notification_mailer
from councilhub.members import services
from councilhub.members.models import User
from councilhub.members.schemas import UserOut
from councilhub.utils import PermissionDenied, ok
from councilhub.web.api.envelope import Envelope
from councilhub.web.api.errors import translate_service_errors

router = APIRouter()


def issue_tokens(user: User) -> Token:
    access_token = security.create_access_token(data={"sub": str(user.id)})
    refresh_token = security.create_refresh_token(
        data={"sub": str(user.id), "rtp": user.refresh_token_param}
    )
    return Token(access_token=access_token, refresh_token=refresh_token, token_type="bearer")


async def sign_in(session: AsyncSession, email: str, password: str) -> User:
    """Credential and lifecycle checks shared by the API and the console login."""
    user = await services.authenticate_user(session, email=email, password=password)
    if not user:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Incorrect email or password",
            headers={"WWW-Authenticate": "Bearer"},
        )
    try:
        services.ensure_can_sign_in(user)
    except PermissionDenied as e:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=str(e))
    await services.record_login(session, user)
    return user


# -----------------------
# Authentication endpoints
# -----------------------
@router.post("/token", response_model=Token)
async def login_for_access_token(
    form_data: OAuth2PasswordRequestForm = Depends(),
    session: AsyncSession = Depends(get_db_session),
):
    """
    Standard OAuth2 password flow. The username field carries the email.
    """
    user = await sign_in(session, form_data.username, form_data.password)
    return issue_tokens(user)


@router.post("/token/refresh", response_model=Token)
async def refresh_access_token(
    payload: RefreshIn,
    session: AsyncSession = Depends(get_db_session),
):
    """
    Refreshes an access token using a valid refresh token.
    """
    credentials_exception = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Could not validate refresh token",
        headers={"WWW-Authenticate": "Bearer"},
    )
    try:
        claims = jwt.decode(
            payload.refresh_token, security.SECRET_KEY, algorithms=[security.ALGORITHM]
        )
        user_id = int(claims.get("sub"))
        rtp = claims.get("rtp")
        if claims.get("type") != "refresh" or rtp is None:
            raise credentials_exception
    except (JWTError, TypeError, ValueError):
        raise credentials_exception

    user = await session.get(User, user_id)
    if not user or not user.active or user.refresh_token_param != rtp:
        # the refresh token parameter moved on, so this token was revoked
        raise credentials_exception
    return issue_tokens(user)


@router.post(
    "/auth/register",
    response_model=Envelope[RegisterOut],
    status_code=status.HTTP_201_CREATED,
)
@translate_service_errors
async def register(
    payload: RegisterIn,
    request: Request,
    session: AsyncSession = Depends(get_db_session),
    mailer: Mailer = Depends(get_mailer),
    recaptcha: RecaptchaIntegration = Depends(get_recaptcha_integration),
):
    """Public self-registration; the account waits for verification and approval."""
    client_ip = request.client.host if request.client else None
    check = await recaptcha.verify(payload.recaptcha_token, client_ip)
    if not check.success:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=check.error or "reCAPTCHA verification failed",
        )
    notes = MessageCollector()
    user, sent = await services.register_user(
        session,
        email=str(payload.email),
        name=payload.name,
        password=payload.password,
        mailer=mailer,
        notifier=notes,
    )
    return ok(
        RegisterOut(user_id=user.id, email=user.email, email_sent=sent),
        **notes.as_dict(),
    )


@router.get("/auth/verify-email", response_model=Envelope[UserOut])
@translate_service_errors
async def verify_email(
    token: str,
    session: AsyncSession = Depends(get_db_session),
    notification_mailer: Mailer = Depends(get_notification_mailer),
):
    notes = MessageCollector()
    user = await services.verify_email_token(
        session, token=token, notification_mailer=notification_mailer, notifier=notes
    )
    return ok(UserOut.model_validate(user), **notes.as_dict())


@router.post("/auth/resend-verification", response_model=Envelope[None])
@translate_service_errors
async def resend_verification(
    payload: ResendIn,
    session: AsyncSession = Depends(get_db_session),
    mailer: Mailer = Depends(get_mailer),
):
    """Always reports success so the endpoint cannot be used to probe addresses."""
    await services.resend_verification_public(session, email=str(payload.email), mailer=mailer)
    return ok(
        message="If an unverified account exists for that address, a new link has been sent."
    )


@router.get("/users/me", response_model=Envelope[UserOut])
async def read_users_me(current_user: User = Depends(get_current_user_db)):
    return ok(UserOut.model_validate(current_user))
