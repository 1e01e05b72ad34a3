"""SSO browser cookie credential strategy.

This module provides :class:`SsoCookieStrategy`, which implements the
``sso_cookie`` strategy: it opens a real browser on the SSO entry page, lets
the user sign in by hand, and captures the Maconomy session cookie with the
configured :class:`~maconomy_auth.models.CaptureMode`.

See Also:
    :class:`maconomy_auth.auth.base.CredentialStrategy` for the base interface.
    :class:`~.capture.CookieCaptureController` for the capture modes.
"""

from __future__ import annotations

import logging
from typing import Optional

from playwright.sync_api import Error as PlaywrightError

from maconomy_auth.auth.base import AcquisitionResult, CredentialStrategy, Interaction
from maconomy_auth.exceptions import ConfigError, MaconomyAuthError
from maconomy_auth.models import AuthSettings, CaptureMode, CaptureOutcome
from maconomy_auth.plugins.browser_login.capture import CookieCaptureController
from maconomy_auth.plugins.browser_login.driver import BrowserSessionDriver

logger = logging.getLogger(__name__)


class SsoCookieStrategy(CredentialStrategy):
    """Acquire a Maconomy session cookie through an interactive SSO login."""

    @property
    def name(self) -> str:
        return "sso_cookie"

    def create_driver(self, settings: AuthSettings) -> BrowserSessionDriver:
        return BrowserSessionDriver(browser=settings.browser, headless=settings.headless)

    def acquire(
        self,
        settings: AuthSettings,
        interaction: Optional[Interaction] = None,
    ) -> AcquisitionResult:
        """Open the browser and capture the session cookie.

        Returns:
            An :class:`~maconomy_auth.auth.base.AcquisitionResult` holding the
            :class:`~maconomy_auth.models.CapturedCookie`, or a
            :class:`~maconomy_auth.exceptions.TimeoutError_` /
            :class:`~maconomy_auth.exceptions.NotFoundError` failure.

        Raises:
            ConfigError: If ``sso_entry_url`` is missing.
            MaconomyAuthError: If the browser cannot be launched or is
                closed during the capture.
        """
        errors = self.validate_settings(settings)
        if errors:
            raise ConfigError("; ".join(errors))

        interaction = interaction or Interaction()
        try:
            with self.create_driver(settings) as driver:
                controller = CookieCaptureController(
                    driver, settings.cookie_name_prefix, settings.sso_entry_url
                )
                outcome = self._run(controller, settings, interaction)
        except PlaywrightError as exc:
            raise MaconomyAuthError(f"Browser session ended unexpectedly: {exc}") from exc

        if outcome.cookie is not None:
            return AcquisitionResult(credential=outcome.cookie)
        failure = outcome.to_error(settings.cookie_name_prefix)
        assert failure is not None
        return AcquisitionResult(failure=failure)

    def _run(
        self,
        controller: CookieCaptureController,
        settings: AuthSettings,
        interaction: Interaction,
    ) -> CaptureOutcome:
        logger.debug("Capturing cookie in %s mode", settings.capture_mode.value)
        if settings.capture_mode == CaptureMode.CHECKPOINT:
            return controller.capture_checkpoint(interaction.wait_for_login)
        if settings.capture_mode == CaptureMode.POLL:
            return controller.capture_polling(
                settings.flow_timeout, interval=settings.cookie_poll_interval
            )
        return controller.capture_reactive(settings.flow_timeout)

    def validate_settings(self, settings: AuthSettings) -> list[str]:
        errors: list[str] = []
        if not settings.sso_entry_url:
            errors.append("sso_cookie requires 'sso_entry_url'")
        return errors
