"""
Static template catalog and template/image compatibility checks.
"""
from dataclasses import dataclass, field
from typing import Optional, Dict, Any, List

from .dimensions import parse_dimension
from .models import SubjectImage, ValidationIssue
from .constants import Severity

TEMPLATE_CATEGORIES = ["web", "social", "logo", "favicon"]

TEMPLATES: List[Dict[str, Any]] = [
    # web
    {"id": "web-hero", "display_name": "Hero Banner", "category": "web", "platform": "web",
     "width": 1920, "height": 1080, "recommended_formats": ["webp", "jpg"],
     "description": "Full-width hero banner for websites"},
    {"id": "web-blog", "display_name": "Blog Featured Image", "category": "web", "platform": "web",
     "width": 1200, "height": 630, "recommended_formats": ["webp", "jpg"],
     "description": "Blog post featured image (Open Graph size)"},
    {"id": "web-content", "display_name": "Content Image", "category": "web", "platform": "web",
     "width": 1200, "height": "flex", "recommended_formats": ["webp", "jpg", "png"],
     "description": "Content image with natural height"},
    {"id": "web-thumb", "display_name": "Thumbnail", "category": "web", "platform": "web",
     "width": 300, "height": 300, "recommended_formats": ["webp", "jpg"],
     "description": "Square thumbnail for listings"},
    # social
    {"id": "instagram-square", "display_name": "Instagram Square Post", "category": "social",
     "platform": "instagram", "width": 1080, "height": 1080, "recommended_formats": ["jpg", "png"],
     "description": "Square feed post"},
    {"id": "instagram-portrait", "display_name": "Instagram Portrait Post", "category": "social",
     "platform": "instagram", "width": 1080, "height": 1350, "recommended_formats": ["jpg", "png"],
     "description": "Portrait feed post (4:5)"},
    {"id": "instagram-stories", "display_name": "Instagram Story", "category": "social",
     "platform": "instagram", "width": 1080, "height": 1920, "recommended_formats": ["jpg", "png"],
     "description": "Full-screen story"},
    {"id": "facebook-cover", "display_name": "Facebook Cover", "category": "social",
     "platform": "facebook", "width": 851, "height": 315, "recommended_formats": ["jpg", "png"],
     "description": "Page cover photo"},
    {"id": "facebook-shared", "display_name": "Facebook Shared Image", "category": "social",
     "platform": "facebook", "width": 1200, "height": 630, "recommended_formats": ["jpg", "png"],
     "description": "Link and post share image"},
    {"id": "twitter-header", "display_name": "Twitter Header", "category": "social",
     "platform": "twitter", "width": 1500, "height": 500, "recommended_formats": ["jpg", "png"],
     "description": "Profile header banner"},
    {"id": "twitter-profile", "display_name": "Twitter Profile Picture", "category": "social",
     "platform": "twitter", "width": 400, "height": 400, "recommended_formats": ["jpg", "png"],
     "description": "Profile avatar"},
    {"id": "youtube-thumbnail", "display_name": "YouTube Thumbnail", "category": "social",
     "platform": "youtube", "width": 1280, "height": 720, "recommended_formats": ["jpg", "png"],
     "description": "Video thumbnail"},
    # logo
    {"id": "logo-square", "display_name": "Square Logo", "category": "logo", "platform": "brand",
     "width": 500, "height": 500, "recommended_formats": ["png", "svg"],
     "description": "Square logo mark"},
    {"id": "logo-rectangular", "display_name": "Rectangular Logo", "category": "logo", "platform": "brand",
     "width": 300, "height": 150, "recommended_formats": ["png", "svg"],
     "description": "Horizontal logo lockup"},
    {"id": "logo-flexible", "display_name": "Flexible Logo", "category": "logo", "platform": "brand",
     "width": "auto", "height": 100, "recommended_formats": ["png", "svg"],
     "description": "Logo at a fixed height with natural width"},
    # favicon
    {"id": "favicon-basic", "display_name": "Basic Favicon", "category": "favicon", "platform": "web",
     "width": 16, "height": 16, "recommended_formats": ["ico", "png"],
     "description": "Classic browser tab icon"},
    {"id": "favicon-apple", "display_name": "Apple Touch Icon", "category": "favicon", "platform": "apple",
     "width": 180, "height": 180, "recommended_formats": ["png"],
     "description": "iOS home screen icon"},
    {"id": "favicon-android", "display_name": "Android Chrome Icon", "category": "favicon", "platform": "android",
     "width": 192, "height": 192, "recommended_formats": ["png"],
     "description": "Android home screen icon"},
]

_BY_ID = {template["id"]: template for template in TEMPLATES}

# Aspect ratios within this distance count as matching
ASPECT_TOLERANCE = 0.05


@dataclass
class TemplateCompatibility:
    compatible: bool = True
    score: int = 100
    warnings: List[ValidationIssue] = field(default_factory=list)
    suggestions: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "compatible": self.compatible,
            "score": self.score,
            "warnings": [w.to_dict() for w in self.warnings],
            "suggestions": list(self.suggestions),
        }


def get_template(template_id: Optional[str]) -> Optional[Dict[str, Any]]:
    if not template_id:
        return None
    return _BY_ID.get(template_id)


def get_templates_by_category(category: Optional[str] = None) -> List[Dict[str, Any]]:
    if not category or category == "all":
        return list(TEMPLATES)
    return [t for t in TEMPLATES if t["category"] == category]


def get_flexible_templates(templates: Optional[List[Dict[str, Any]]] = None) -> List[Dict[str, Any]]:
    """Templates with at least one variable dimension"""
    templates = TEMPLATES if templates is None else templates
    return [
        t for t in templates
        if parse_dimension(t.get("width")).is_variable or parse_dimension(t.get("height")).is_variable
    ]


def get_template_aspect_ratio(template: Optional[Dict[str, Any]]) -> Optional[float]:
    """Width/height ratio, or None when either side is variable or missing."""
    if not template:
        return None
    width = parse_dimension(template.get("width"))
    height = parse_dimension(template.get("height"))
    if not width.is_fixed or not height.is_fixed or not height.value:
        return None
    return width.value / height.value


def _warning(code: str, message: str) -> ValidationIssue:
    return ValidationIssue(code=code, message=message, severity=Severity.warning.value)


def check_template_compatibility(template: Dict[str, Any], image: SubjectImage) -> TemplateCompatibility:
    """
    Compare an image against a template.

    Fixed templates check both sides and the aspect ratio; templates with a
    variable side only check the fixed side as a minimum.
    """
    result = TemplateCompatibility()
    width = parse_dimension(template.get("width"))
    height = parse_dimension(template.get("height"))

    if not width.is_variable and not height.is_variable:
        if width.value and image.width < width.value:
            result.warnings.append(_warning(
                "small_width",
                f"Image width ({image.width}px) is {width.value - image.width}px smaller than template width ({width.value}px)",
            ))
            result.suggestions.append("Use a larger source image or enable upscaling")
        if height.value and image.height < height.value:
            result.warnings.append(_warning(
                "small_height",
                f"Image height ({image.height}px) is {height.value - image.height}px smaller than template height ({height.value}px)",
            ))
            result.suggestions.append("Use a larger source image or enable upscaling")

        template_aspect = get_template_aspect_ratio(template)
        if template_aspect and image.height:
            if abs(template_aspect - image.aspect_ratio) > ASPECT_TOLERANCE:
                result.warnings.append(_warning(
                    "aspect_mismatch",
                    f"Aspect ratio mismatch: template {template_aspect:.2f}:1 vs image {image.aspect_ratio:.2f}:1",
                ))
                result.suggestions.append("Enable smart cropping to match the template aspect ratio")
    else:
        if width.is_variable and height.value and image.height < height.value:
            result.warnings.append(_warning(
                "small_height",
                f"Image height ({image.height}px) smaller than template minimum height ({height.value}px)",
            ))
        if height.is_variable and width.value and image.width < width.value:
            result.warnings.append(_warning(
                "small_width",
                f"Image width ({image.width}px) smaller than template minimum width ({width.value}px)",
            ))

    recommended = [f.lower() for f in template.get("recommended_formats", [])]
    if image.has_transparency and "jpg" in recommended:
        result.warnings.append(_warning(
            "transparency_loss",
            "Image has transparency but template recommends JPEG format",
        ))
        result.suggestions.append("Add a background color or use PNG/WebP to keep transparency")

    result.score = max(0, 100 - 20 * len(result.warnings))
    return result
