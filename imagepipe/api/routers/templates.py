from fastapi import APIRouter, HTTPException, Query
from typing import Dict, Any, List, Optional

from imagepipe.core.templates import (
    TEMPLATE_CATEGORIES,
    get_template,
    get_templates_by_category,
    get_template_aspect_ratio,
)

router = APIRouter()


def _with_aspect(template: Dict[str, Any]) -> Dict[str, Any]:
    return {**template, "aspect_ratio": get_template_aspect_ratio(template)}


@router.get("")
async def list_templates(category: Optional[str] = Query(None)) -> List[Dict[str, Any]]:
    """List catalog templates, optionally filtered by category"""
    if category and category != "all" and category not in TEMPLATE_CATEGORIES:
        raise HTTPException(status_code=400, detail=f"Unknown category: {category}")
    return [_with_aspect(t) for t in get_templates_by_category(category)]


@router.get("/{template_id}")
async def get_template_detail(template_id: str) -> Dict[str, Any]:
    template = get_template(template_id)
    if template is None:
        raise HTTPException(status_code=404, detail="Template not found")
    return _with_aspect(template)
