"""
Social media platforms and the content styles each one accepts.

A post's content style decides how many images it may carry, whether it needs a
video or a link, and how long its caption may be. Posts are validated against
these rules whenever they are created or edited.
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from typing import Any, Dict, FrozenSet, List, Optional

from portal.errors import InvalidArgument
from portal.models import ContentStyle, Platform


@dataclass(frozen=True)
class StyleRules:
    min_images: Optional[int] = None
    max_images: Optional[int] = None
    requires_video: bool = False
    requires_link: bool = False
    max_content_length: Optional[int] = None


PLATFORM_CONTENT_STYLES: Dict[Platform, FrozenSet[ContentStyle]] = {
    Platform.facebook: frozenset({ContentStyle.post, ContentStyle.story, ContentStyle.reel, ContentStyle.carousel, ContentStyle.video}),
    Platform.instagram: frozenset({ContentStyle.post, ContentStyle.story, ContentStyle.reel, ContentStyle.carousel, ContentStyle.igtv}),
    Platform.twitter: frozenset({ContentStyle.tweet, ContentStyle.thread, ContentStyle.poll}),
    Platform.linkedin: frozenset({ContentStyle.post, ContentStyle.article, ContentStyle.carousel, ContentStyle.video}),
    Platform.tiktok: frozenset({ContentStyle.video}),
}

CONTENT_STYLE_RULES: Dict[ContentStyle, StyleRules] = {
    ContentStyle.post: StyleRules(min_images=0, max_images=10),
    ContentStyle.story: StyleRules(min_images=0, max_images=1),
    ContentStyle.reel: StyleRules(requires_video=True),
    ContentStyle.carousel: StyleRules(min_images=2, max_images=10),
    # The single image is the video thumbnail
    ContentStyle.video: StyleRules(min_images=0, max_images=1, requires_video=True),
    ContentStyle.tweet: StyleRules(min_images=0, max_images=4, max_content_length=280),
    ContentStyle.thread: StyleRules(min_images=0, max_images=4, max_content_length=280),
    ContentStyle.poll: StyleRules(min_images=0, max_images=1),
    ContentStyle.article: StyleRules(min_images=0, max_images=1, requires_link=True),
    ContentStyle.igtv: StyleRules(requires_video=True),
}


def decode_images(value: Any) -> List[str]:
    """Images are stored as a JSON array string; accept either form."""
    if value is None or value == "":
        return []
    if isinstance(value, str):
        try:
            value = json.loads(value)
        except ValueError:
            raise InvalidArgument("images must be a JSON array of URLs") from None
    if not isinstance(value, list):
        raise InvalidArgument("images must be a JSON array of URLs")
    return [str(v) for v in value]


def encode_images(images: Optional[List[str]]) -> Optional[str]:
    return json.dumps(list(images)) if images else None


def validate_social_content(
    platform: Any,
    content_style: Any,
    caption: Optional[str] = None,
    images: Any = None,
    video_url: Optional[str] = None,
    link: Optional[str] = None,
) -> None:
    """
    Check a post against its platform and content style.

    Raises:
        InvalidArgument: With the first rule the post breaks
    """
    if not platform or not content_style:
        raise InvalidArgument("Platform, content style, and client ID are required")
    try:
        platform = Platform(platform)
        style = ContentStyle(content_style)
    except ValueError:
        raise InvalidArgument("Unknown platform or content style") from None
    if style not in PLATFORM_CONTENT_STYLES[platform]:
        raise InvalidArgument(f"{platform.value} does not support the {style.value} content style")

    rules = CONTENT_STYLE_RULES[style]
    image_count = len(decode_images(images))

    if rules.requires_video and not video_url:
        raise InvalidArgument("Video is required for this content style")
    if rules.requires_link and not link:
        raise InvalidArgument("Link is required for this content style")
    if rules.min_images is not None and image_count < rules.min_images:
        raise InvalidArgument(f"At least {rules.min_images} image(s) required for this content style")
    if rules.max_images is not None and image_count > rules.max_images:
        raise InvalidArgument(f"Maximum {rules.max_images} image(s) allowed for this content style")
    if rules.max_content_length is not None and caption and len(caption) > rules.max_content_length:
        raise InvalidArgument(f"Content must be {rules.max_content_length} characters or less")
