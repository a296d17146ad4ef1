"""Template Renderer — resolves a template and substitutes ``{{variables}}``.

Substitution is a single regex pass over the subject and the body.  Each
token is replaced from the variable map; tokens without a value are left
verbatim so a partially misconfigured template still delivers the rest of
its text.  A value that itself looks like a token is emitted as-is and never
re-expanded.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from datetime import datetime, timedelta, timezone
from typing import Any

from herald.config import HeraldSettings
from herald.core.errors import TemplateNotFoundError
from herald.models.applications import Application
from herald.models.routing import RecipientType
from herald.models.templates import TOKEN_PATTERN, MessageTemplate, RenderedContent
from herald.store.base import ConfigStore

logger = logging.getLogger(__name__)


def substitute(text: str, variables: dict[str, str]) -> tuple[str, list[str]]:
    """Replace every known ``{{token}}`` in *text* in one pass.

    Returns the rendered text and the names of tokens left unresolved.
    """
    unresolved: list[str] = []

    def _replace(match) -> str:
        name = match.group(1)
        if name in variables:
            return variables[name]
        if name not in unresolved:
            unresolved.append(name)
        return match.group(0)

    return TOKEN_PATTERN.sub(_replace, text), unresolved


def build_variable_map(
    application: Application,
    *,
    support_email: str,
    support_phone: str,
    deadline: datetime,
    extra: dict[str, Any] | None = None,
) -> dict[str, str]:
    """Build the substitution map for one application snapshot.

    Application ``metadata`` keys are included first so that the fixed
    application fields and support constants always win over them.
    ``extra`` (caller context such as the escalation attempt) wins over
    everything.
    """
    variables: dict[str, str] = {
        str(k): str(v) for k, v in application.metadata.items()
    }
    variables.update({
        "applicant_name": application.applicant_name,
        "applicant_email": application.applicant_email,
        "applicant_phone": application.applicant_phone,
        "application_id": application.id,
        "application_type": application.type,
        "status": application.status.value,
        "current_status": application.status.value.replace("_", " ").title(),
        "submitted_date": application.submitted_at.strftime("%B %d, %Y"),
        "deadline": deadline.strftime("%B %d, %Y"),
        "support_email": support_email,
        "support_phone": support_phone,
    })
    if extra:
        variables.update({str(k): str(v) for k, v in extra.items()})
    return variables


class TemplateRenderer:
    """Looks up templates by routing key and renders them.

    Parameters
    ----------
    config_store:
        Source of message templates.
    settings:
        Supplies the support-contact constants and the deadline offset.
    clock:
        Returns "now"; injectable so tests can simulate time.
    """

    def __init__(
        self,
        config_store: ConfigStore,
        settings: HeraldSettings | None = None,
        *,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self._store = config_store
        self._settings = settings or HeraldSettings()
        self._clock = clock or (lambda: datetime.now(timezone.utc))

    def resolve_template(
        self, event_id: str, channel_id: str, recipient_type: RecipientType
    ) -> MessageTemplate:
        """Return the active template for the key, newest first on ambiguity.

        Raises
        ------
        TemplateNotFoundError
            If no active template matches.
        """
        candidates = [
            t
            for t in self._store.find_templates(event_id, channel_id, recipient_type)
            if t.is_active
        ]
        if not candidates:
            raise TemplateNotFoundError(event_id, channel_id, RecipientType(recipient_type).value)

        candidates.sort(key=lambda t: t.updated_at, reverse=True)
        if len(candidates) > 1:
            logger.warning(
                "Ambiguous templates for event=%s channel=%s recipient_type=%s: %s; using %s",
                event_id,
                channel_id,
                RecipientType(recipient_type).value,
                [t.id for t in candidates],
                candidates[0].id,
            )
        return candidates[0]

    def render(
        self,
        event_id: str,
        channel_id: str,
        recipient_type: RecipientType,
        application: Application,
        *,
        extra: dict[str, Any] | None = None,
    ) -> RenderedContent:
        """Render the template for ``(event_id, channel_id, recipient_type)``."""
        template = self.resolve_template(event_id, channel_id, recipient_type)
        variables = build_variable_map(
            application,
            support_email=self._settings.support_email,
            support_phone=self._settings.support_phone,
            deadline=self._clock() + timedelta(days=self._settings.deadline_days),
            extra=extra,
        )

        body, unresolved = substitute(template.body, variables)
        subject = None
        if template.subject is not None:
            subject, missing = substitute(template.subject, variables)
            unresolved.extend(n for n in missing if n not in unresolved)

        if unresolved:
            logger.warning(
                "Template %s rendered with unresolved variables: %s",
                template.id,
                ", ".join(unresolved),
            )

        return RenderedContent(
            template_id=template.id,
            subject=subject,
            body=body,
            unresolved=unresolved,
        )
