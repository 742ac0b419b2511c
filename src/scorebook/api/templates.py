"""Rule template endpoints (read-only)."""

from __future__ import annotations

from fastapi import APIRouter, HTTPException

from scorebook.core.errors import UnknownTemplateError
from scorebook.models.templates import RULE_TEMPLATES, get_template

router = APIRouter(prefix="/api/templates", tags=["templates"])


@router.get("")
async def list_templates() -> list[dict]:
    return [
        {
            "id": t.id,
            "sport": t.sport,
            "name": t.name,
            "periods": [p.label for p in t.periods],
            "zones": [z.id for z in t.scoring.zones],
        }
        for t in RULE_TEMPLATES
    ]


@router.get("/{template_id}")
async def get_template_detail(template_id: str) -> dict:
    try:
        template = get_template(template_id)
    except UnknownTemplateError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    return template.model_dump(mode="json")
