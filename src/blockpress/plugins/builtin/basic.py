"""
Basic Blocks Plugin

The block set every editor starts with: headings, paragraphs, images,
buttons and a column container. Also normalizes text on save, keeps heading
levels in range when rendering and offers property controls for the
selected element.
"""

import re
from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field

from blockpress.blocks.base import CONTAINER, INTERACTIVE, MEDIA, TEXT, BlockDefinition
from blockpress.core.plugins.hooks import hookimpl

__plugin_info__ = {
    'name': 'basic',
    'version': '1.0.0',
    'description': 'Heading, paragraph, image, button and columns blocks',
    'author': 'BlockPress Team',
}

TEXT_FIELDS = ('text', 'label', 'alt')
_WHITESPACE = re.compile(r'\s+')


class HeadingProperties(BaseModel):
    model_config = ConfigDict(extra='allow')

    text: str = ""
    level: int = Field(default=2, ge=1, le=6)
    align: Literal['left', 'center', 'right'] = 'left'


class ParagraphProperties(BaseModel):
    model_config = ConfigDict(extra='allow')

    text: str = ""
    align: Literal['left', 'center', 'right', 'justify'] = 'left'


class ImageProperties(BaseModel):
    model_config = ConfigDict(extra='allow')

    src: str = ""
    alt: str = ""
    width: Optional[int] = Field(default=None, ge=1)


class ButtonProperties(BaseModel):
    model_config = ConfigDict(extra='allow')

    label: str = "Click here"
    href: str = "#"
    style: Literal['primary', 'secondary', 'link'] = 'primary'


class ColumnsProperties(BaseModel):
    model_config = ConfigDict(extra='allow')

    count: int = Field(default=2, ge=1, le=6)
    gap: int = Field(default=16, ge=0)


BLOCKS = [
    BlockDefinition(
        id="heading",
        display_name="Heading",
        default_properties={'text': "", 'level': 2, 'align': 'left'},
        capabilities=frozenset({TEXT}),
        schema=HeadingProperties,
    ),
    BlockDefinition(
        id="paragraph",
        display_name="Paragraph",
        default_properties={'text': "", 'align': 'left'},
        capabilities=frozenset({TEXT}),
        schema=ParagraphProperties,
    ),
    BlockDefinition(
        id="image",
        display_name="Image",
        default_properties={'src': "", 'alt': "", 'width': None},
        capabilities=frozenset({MEDIA}),
        schema=ImageProperties,
    ),
    BlockDefinition(
        id="button",
        display_name="Button",
        default_properties={'label': "Click here", 'href': "#", 'style': 'primary'},
        capabilities=frozenset({TEXT, INTERACTIVE}),
        schema=ButtonProperties,
    ),
    BlockDefinition(
        id="columns",
        display_name="Columns",
        default_properties={'count': 2, 'gap': 16},
        capabilities=frozenset({CONTAINER}),
        schema=ColumnsProperties,
    ),
]

BLOCK_IDS = frozenset(block.id for block in BLOCKS)


@hookimpl
def before_save(tree, document_id):
    """Collapse runs of whitespace in text fields of basic blocks."""
    for node in tree.walk():
        if node.type not in BLOCK_IDS:
            continue
        for key in TEXT_FIELDS:
            value = node.properties.get(key)
            if isinstance(value, str):
                node.properties[key] = _WHITESPACE.sub(' ', value).strip()
    return tree


@hookimpl
def element_render(properties, node):
    """Clamp heading levels into 1-6."""
    if node.type != "heading":
        return properties

    level = properties.get('level')
    if isinstance(level, str) and level.strip().isdigit():
        level = int(level)
    if isinstance(level, int) and not isinstance(level, bool):
        properties['level'] = min(max(level, 1), 6)
    return properties


_CONTROL_KINDS = {
    'text': 'textarea',
    'label': 'text',
    'alt': 'text',
    'href': 'url',
    'src': 'url',
    'level': 'number',
    'width': 'number',
    'count': 'number',
    'gap': 'number',
    'align': 'select',
    'style': 'select',
}


@hookimpl
def element_controls(node, definition) -> List[Dict[str, Any]]:
    if definition.id not in BLOCK_IDS:
        return []

    controls = [
        {
            'id': f"{definition.id}.{key}",
            'property': key,
            'kind': _CONTROL_KINDS.get(key, 'text'),
            'value': node.properties.get(key, definition.default_properties[key]),
        }
        for key in definition.default_properties
    ]
    controls.append({'id': f"{definition.id}.remove", 'action': 'remove', 'element_id': node.id})
    return controls
