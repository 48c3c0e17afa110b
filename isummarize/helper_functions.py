import os
from typing import Optional, Tuple

from google.cloud import secretmanager

from isummarize import cloud_logging as logging
from isummarize.errors import ConfigError


def get_secret_value(project_id, secret_id, version_id="latest"):
    """
    Retrieve a secret value from Google Cloud Secret Manager.

    Parameters
    ----------
    project_id : str
        The Google Cloud project ID where the secret is stored
    secret_id : str
        The ID of the secret to retrieve
    version_id : str, optional
        The version of the secret to retrieve, defaults to "latest"

    Returns
    -------
    str
        The secret payload as a UTF-8 decoded string

    Notes
    -----
    Uses Application Default Credentials (ADC) from the environment.
    """
    # Never include the secret payload itself in the log line.
    logging.log_text(
        f"Fetching secret '{secret_id}' from project '{project_id}' (version '{version_id}').",
        severity="DEBUG",
    )
    client = secretmanager.SecretManagerServiceClient()

    name = f"projects/{project_id}/secrets/{secret_id}/versions/{version_id}"
    response = client.access_secret_version(request={"name": name})
    payload = response.payload.data.decode("UTF-8")

    logging.log_text(f"Successfully fetched secret '{secret_id}'.", severity="INFO")
    return payload


def resolve_secret(env_var: str, secret_id: str, *, required: bool = True) -> Optional[str]:
    """
    Resolve a credential from the environment, falling back to Secret Manager.

    Resolution order is ``env_var`` > Secret Manager (only when
    ``GOOGLE_CLOUD_PROJECT`` is set) > error.

    Parameters
    ----------
    env_var : str
        Environment variable that may hold the value directly
    secret_id : str
        Secret Manager ID consulted when the variable is absent
    required : bool, optional
        Raise :class:`ConfigError` instead of returning ``None`` when the value
        cannot be found, defaults to True
    """
    value = os.getenv(env_var)
    if value:
        return value

    project_id = os.getenv("GOOGLE_CLOUD_PROJECT")
    if project_id:
        try:
            return get_secret_value(project_id, secret_id)
        except Exception as exc:  # pragma: no cover – network / IAM failures
            logging.log_text(
                f"Failed to retrieve '{secret_id}' from Secret Manager: {exc}",
                severity="ERROR",
            )

    if required:
        raise ConfigError(
            f"{env_var} is not set and secret '{secret_id}' could not be loaded"
        )
    return None


def slack_ts_key(ts: str) -> Tuple[int, int]:
    """Return an exact sort key for a Slack ``"<seconds>.<micros>"`` timestamp."""
    seconds, _, fraction = str(ts).partition(".")
    return int(seconds or 0), int(fraction.ljust(6, "0")[:6] or 0)
