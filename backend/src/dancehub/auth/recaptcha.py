"""reCAPTCHA token verification for self-registration."""

import logging

import httpx

logger = logging.getLogger(__name__)


class RecaptchaVerifier:
    """Verifies reCAPTCHA tokens against Google's siteverify API."""

    ENDPOINT = "https://www.google.com/recaptcha/api/siteverify"

    def __init__(
        self,
        secret_key: str,
        client: httpx.AsyncClient | None = None,
        timeout: float = 10.0,
    ):
        self._secret_key = secret_key
        self._client = client
        self._timeout = timeout

    async def verify(self, token: str | None) -> bool:
        """Return True when Google accepts the token.

        Network failures count as a failed verification.
        """
        if not token:
            return False

        close_client = self._client is None
        client = self._client or httpx.AsyncClient(timeout=self._timeout)
        try:
            response = await client.post(
                self.ENDPOINT,
                data={"secret": self._secret_key, "response": token},
            )
            body = response.json()
        except (httpx.HTTPError, ValueError) as e:
            logger.error("reCAPTCHA verification request failed: %s", e)
            return False
        finally:
            if close_client:
                await client.aclose()

        if body.get("success"):
            return True

        logger.warning("reCAPTCHA verification failed: %s", body.get("error-codes"))
        return False
