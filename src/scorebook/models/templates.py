"""Built-in rule templates and the template registry.

Templates coexist; a match picks one at creation and keeps it for life.
"""

from __future__ import annotations

from scorebook.core.errors import UnknownTemplateError
from scorebook.models.rules import (
    ClockAlert,
    ClockRules,
    MatchDefaults,
    PeriodDefinition,
    RuleTemplate,
    ScoreZone,
    ScoringRules,
    SubstitutionRules,
)

NETBALL_POSITIONS: tuple[str, ...] = ("GS", "GA", "WA", "C", "WD", "GD", "GK")
SHOOTERS: tuple[str, ...] = ("GA", "GS")

_NETBALL_CLOCK = ClockRules(
    auto_start_on_centre_pass=False,
    stoppage_categories=("team", "injury", "official"),
    alerts=(
        ClockAlert(seconds_remaining=60, tone="period_warning"),
        ClockAlert(seconds_remaining=0, tone="period_end"),
    ),
)


def _quarters(minutes: int, breaks: tuple[int, int, int]) -> tuple[PeriodDefinition, ...]:
    """Four quarters of ``minutes`` each; the last quarter has no break."""
    periods = [
        PeriodDefinition(label=f"Q{i + 1}", duration_seconds=minutes * 60, break_seconds=b * 60)
        for i, b in enumerate(breaks)
    ]
    periods.append(PeriodDefinition(label="Q4", duration_seconds=minutes * 60))
    return tuple(periods)


NETBALL_STANDARD = RuleTemplate(
    id="netball-standard-1",
    sport="netball",
    name="Netball (World Netball Standard)",
    version="0.1.0",
    defaults=MatchDefaults(
        periods=_quarters(15, (3, 12, 3)),
        centre_pass_alternates=True,
        allow_draw=False,
    ),
    scoring=ScoringRules(
        zones=(ScoreZone(id="circle", label="Goal Circle", points=1, restricted_to_roles=SHOOTERS),),
    ),
    clock=_NETBALL_CLOCK,
    substitutions=SubstitutionRules(mode="rolling"),
)

NETBALL_FAST5 = NETBALL_STANDARD.model_copy(
    update={
        "id": "netball-fast5-1",
        "name": "Netball Fast5",
        "defaults": MatchDefaults(
            periods=_quarters(6, (2, 6, 2)),
            centre_pass_alternates=True,
            allow_draw=False,
        ),
        "scoring": ScoringRules(
            zones=(
                ScoreZone(id="inner", label="Inner Circle", points=1, restricted_to_roles=SHOOTERS),
                ScoreZone(id="outer", label="Outer Circle", points=2, restricted_to_roles=SHOOTERS),
                ScoreZone(id="super", label="Super Shot", points=3, restricted_to_roles=SHOOTERS),
            ),
        ),
    }
)

RULE_TEMPLATES: tuple[RuleTemplate, ...] = (NETBALL_STANDARD, NETBALL_FAST5)

DEFAULT_TEMPLATE = NETBALL_STANDARD

_BY_ID: dict[str, RuleTemplate] = {t.id: t for t in RULE_TEMPLATES}


def get_template(template_id: str) -> RuleTemplate:
    """Return the registered template with this id.

    Raises UnknownTemplateError if no such template exists.
    """
    try:
        return _BY_ID[template_id]
    except KeyError:
        raise UnknownTemplateError(template_id) from None


def template_ids() -> list[str]:
    return list(_BY_ID)
