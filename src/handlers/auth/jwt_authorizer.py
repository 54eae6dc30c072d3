import logging
import os
import jwt

from src.common.models.users import UserRole

logger = logging.getLogger()
logger.setLevel(logging.INFO)

JWT_SECRET = os.environ.get("JWT_SECRET")
JWT_ALGORITHM = os.environ.get("JWT_ALGORITHM", "HS256")

if not JWT_SECRET:
    raise RuntimeError("JWT_SECRET environment variable is not set")


class AuthorizationFailed(Exception):
    pass


def _generate_policy(principal_id, effect, resource, context=None):
    auth_response = {
        "principalId": principal_id,
        "policyDocument": {
            "Version": "2012-10-17",
            "Statement": [
                {
                    "Action": "execute-api:Invoke",
                    "Effect": effect,
                    "Resource": resource,
                }
            ],
        },
    }

    if context:
        auth_response["context"] = {k: str(v) for k, v in context.items()}

    return auth_response


def _get_stage_arn(method_arn: str) -> str:
    parts = method_arn.split("/")
    return "/".join(parts[:2]) + "/*/*"


def _role_from_claims(claims: dict) -> UserRole:
    # tokens minted for admins carry either role=ADMIN or admin=true
    if claims.get("admin") is True:
        return UserRole.ADMIN
    try:
        return UserRole(str(claims.get("role", "")).upper())
    except ValueError:
        return UserRole.CUSTOMER


def lambda_handler(event, context):
    try:
        headers = event.get("headers") or {}
        token = headers.get("Authorization") or headers.get("authorization")

        if not token:
            raise AuthorizationFailed("Missing Authorization header")

        token = token.removeprefix("Bearer ")

        decoded = jwt.decode(
            token,
            JWT_SECRET,
            algorithms=[JWT_ALGORITHM],
            options={"require": ["exp"]},
        )

        user_id = decoded.get("user_id")
        if not user_id:
            raise AuthorizationFailed("Missing user_id in token")

        return _generate_policy(
            principal_id=user_id,
            effect="Allow",
            resource=_get_stage_arn(event["methodArn"]),
            context={
                "user_id": user_id,
                "email": decoded.get("email", ""),
                "role": _role_from_claims(decoded).value,
            },
        )

    except jwt.ExpiredSignatureError:
        logger.info("Authorization failed: Token expired")
    except jwt.InvalidTokenError as e:
        logger.info(f"Authorization failed: Invalid token {e}")
    except AuthorizationFailed as e:
        logger.info(f"Authorization failed: {e}")
    except Exception:
        logger.exception("Authorization failed")

    return _generate_policy(
        principal_id="unauthorized",
        effect="Deny",
        resource=_get_stage_arn(event["methodArn"]),
    )
