"""Built-in node kinds for the funnel renderer.

Each kind is a callable ``(attrs, children, theme) -> Markup``. Most are a
small jinja2 snippet plus an optional ``prepare`` step that derives values
(styles, option lists) in Python before rendering.
"""

from __future__ import annotations

from typing import Any, Callable, Dict

from markupsafe import Markup

from app.template_render import compile_snippet, render_snippet

KindRenderer = Callable[[Dict[str, Any], Any, Dict[str, Any]], Markup]

_TEXT_TAGS = {"p", "h1", "h2", "h3", "h4", "span", "div", "label"}


def _section(theme: Any, name: str) -> dict:
    value = theme.get(name) if isinstance(theme, dict) else None
    return value if isinstance(value, dict) else {}


def _lookup(theme: Any, name: str, key: Any, fallback: Any = None) -> Any:
    table = _section(theme, name)
    if isinstance(key, str) and key in table:
        return table[key]
    return fallback


def snippet_kind(source: str, prepare: Callable[[dict, Any, dict], dict] | None = None) -> KindRenderer:
    template = compile_snippet(source)

    def _render(attrs: Dict[str, Any], children: Any, theme: Dict[str, Any]) -> Markup:
        context = {
            "a": attrs if isinstance(attrs, dict) else {},
            "children": children,
            "theme": theme if isinstance(theme, dict) else {},
        }
        if prepare is not None:
            context.update(prepare(context["a"], children, context["theme"]))
        return render_snippet(template, context)

    return _render


def _records(value: Any) -> list[dict]:
    if not isinstance(value, list):
        return []
    return [item for item in value if isinstance(item, dict)]


# --- layout ---

_PAGE = snippet_kind(
    '<div class="fn-page" style="max-width: {{ a["width"] | token(theme["width"], "100%") }}">{{ children }}</div>'
)

_BOX = snippet_kind(
    '<div class="fn-box{% if a["fixed"] %} fn-box--fixed{% endif %}" '
    'style="gap: {{ a["gap"] | token(theme["spacing"], 0) }}{% if a["fixed"] %}; background: {{ theme["colors"]["background"] }}EE{% endif %}">'
    "{{ children }}</div>"
)


def _gap_prepare(attrs: dict, children: Any, theme: dict) -> dict:
    spacing = _section(theme, "spacing")
    return {"size": _lookup(theme, "spacing", attrs.get("gap"), spacing.get("md") or "1rem")}


_GAP = snippet_kind('<div class="fn-gap" style="height: {{ size }}; min-height: {{ size }}"></div>', _gap_prepare)

_DIVIDER = snippet_kind('<hr class="fn-divider">')


# --- text ---


def _text_prepare(defaults: dict) -> Callable[[dict, Any, dict], dict]:
    def _prepare(attrs: dict, children: Any, theme: dict) -> dict:
        merged = {**defaults, **{key: val for key, val in attrs.items() if val is not None}}
        tag = merged.get("element") if merged.get("element") in _TEXT_TAGS else "p"
        fonts = _section(theme, "fonts")
        colors = _section(theme, "colors")
        font = fonts.get(merged.get("font")) if isinstance(merged.get("font"), str) else None
        color = colors.get(merged.get("color")) if isinstance(merged.get("color"), str) else None
        style = "; ".join(
            [
                f"font: {font or fonts.get('body', '')}",
                f"color: {color or colors.get('text', '')}",
                f"text-align: {merged.get('text_align') or 'center'}",
                f"width: {_lookup(theme, 'width', merged.get('width'), '100%')}",
                "margin: 0 auto",
            ]
        )
        return {"tag": tag, "style": style, "html": merged.get("html"), "text": merged.get("text")}

    return _prepare


_TEXT_SOURCE = (
    '{% if html %}<{{ tag }} class="fn-text" style="{{ style }}">{{ html | sanitize }}</{{ tag }}>'
    '{% elif text %}<{{ tag }} class="fn-text" style="{{ style }}">{{ text }}</{{ tag }}>{% endif %}'
)

_TEXT = snippet_kind(_TEXT_SOURCE, _text_prepare({}))
_TITLE = snippet_kind(_TEXT_SOURCE, _text_prepare({"element": "h1", "font": "title"}))
_SUBTITLE = snippet_kind(_TEXT_SOURCE, _text_prepare({"font": "sub_title"}))

_NOTIFICATION_CARD = snippet_kind(
    '<div class="fn-notification">'
    '<span class="fn-notification__icon">{{ a["icon"] }}</span><div>'
    '{% if a["title_text"] %}<p class="fn-notification__title">{{ a["title_text"] }}</p>{% endif %}'
    '<p class="fn-notification__body">{{ a["body_text"] }}</p></div></div>'
)


# --- media ---


def _image_prepare(attrs: dict, children: Any, theme: dict) -> dict:
    width = attrs.get("width")
    max_width = attrs.get("max_width")
    return {
        "width": _lookup(theme, "width", width, width or "100%"),
        "max_width": _lookup(theme, "width", max_width, max_width or "100%"),
        "padding": _lookup(theme, "spacing", attrs.get("padding"), 0),
    }


_IMAGE_BOX = snippet_kind(
    '{% if a["src"] %}<div class="fn-image" style="padding: {{ padding }}">'
    '<div class="fn-image__frame" style="width: {{ width }}; max-width: {{ max_width }}">'
    '<img src="{{ a["src"] }}" alt="{{ a["alt"] or "" }}"></div></div>{% endif %}',
    _image_prepare,
)


# --- actions ---


def _button_prepare(attrs: dict, children: Any, theme: dict) -> dict:
    disabled = attrs.get("disabled")
    colors = _section(theme, "colors")
    return {
        "label": attrs.get("text") or "Continue",
        "event": attrs.get("on_click") if isinstance(attrs.get("on_click"), str) else None,
        "fixed": attrs.get("fixed") is True,
        "disabled": isinstance(disabled, dict) or disabled is True,
        "width": _lookup(theme, "width", attrs.get("width"), "100%"),
        "style": "; ".join(
            [
                f"font: {_section(theme, 'fonts').get('button', '')}",
                f"background-color: {colors.get('primary', '')}",
                f"border-color: {colors.get('primary', '')}",
                f"border-radius: {_section(theme, 'border_radius').get('md') or '1rem'}",
                f"opacity: {'0.5' if isinstance(disabled, dict) or disabled is True else '1'}",
            ]
        ),
    }


_BUTTON = snippet_kind(
    '<div class="{% if fixed %}fn-button-wrap fn-button-wrap--fixed{% else %}fn-button-wrap{% endif %}"'
    '{% if not fixed %} style="width: {{ width }}; margin: 0 auto"{% endif %}>'
    '<button class="fn-button" type="button" style="{{ style }}"'
    '{% if event %} data-event="{{ event }}"{% endif %}{% if disabled %} disabled{% endif %}>'
    '{{ label }}{% if a["after_icon"] %} <span class="fn-icon">&rarr;</span>{% endif %}</button></div>',
    _button_prepare,
)


def _picker_prepare(attrs: dict, children: Any, theme: dict) -> dict:
    flavor = attrs.get("item_flavor")
    if flavor == "cloud":
        layout = "cloud"
    elif attrs.get("direction") == "row":
        layout = "grid"
    else:
        layout = "stack"
    return {"options": _records(attrs.get("items")), "layout": layout, "multi": attrs.get("mode") == "multi"}


_ITEM_PICKER = snippet_kind(
    '{% if options %}<div class="fn-picker fn-picker--{{ layout }}">'
    "{% for opt in options %}"
    '<button class="fn-option{% if opt["highlighted"] %} fn-option--highlighted{% endif %}" type="button"'
    '{% if opt["event"] %} data-event="{{ opt["event"] }}"{% endif %} data-value="{{ opt["value"] }}">'
    '{% if opt["image"] and layout != "cloud" %}<img src="{{ opt["image"] }}" alt="{{ opt["label"] }}">{% endif %}'
    '{% if opt["emoji"] and layout == "stack" %}<span class="fn-option__emoji">{{ opt["emoji"] }}</span>{% endif %}'
    '<span class="fn-option__label">{{ opt["label"] }}</span>'
    '{% if opt["description"] and layout == "stack" %}<span class="fn-option__description">{{ opt["description"] }}</span>{% endif %}'
    '{% if layout == "stack" %}{% if multi %}<span class="fn-option__check"></span>{% else %}<span class="fn-icon">&rarr;</span>{% endif %}{% endif %}'
    "</button>{% endfor %}</div>{% endif %}",
    _picker_prepare,
)


def _focus_prepare(attrs: dict, children: Any, theme: dict) -> dict:
    return {"areas": _records(attrs.get("areas"))}


_FOCUS_AREAS = snippet_kind(
    '<div class="fn-focus">{% if a["canvas"] %}<img src="{{ a["canvas"] }}" alt="Body Canvas">{% endif %}'
    '{% if areas %}<div class="fn-focus__areas">{% for area in areas %}'
    '<button class="fn-focus__area" type="button" data-value="{{ area["value"] }}" '
    'style="color: {{ theme["colors"]["primary"] }}">{{ area["label"] }}</button>'
    "{% endfor %}</div>{% endif %}</div>",
    _focus_prepare,
)


def _toggle_prepare(attrs: dict, children: Any, theme: dict) -> dict:
    toggles = []
    for idx, item in enumerate(_records(attrs.get("items"))):
        label = item.get("label")
        toggles.append({"label": label.upper() if isinstance(label, str) else "", "active": idx == 0})
    return {"toggles": toggles}


_UNIT_TOGGLE = snippet_kind(
    '<div class="fn-unit-toggle">{% for item in toggles %}'
    '<button type="button" class="fn-unit{% if item["active"] %} fn-unit--active{% endif %}"'
    '{% if item["active"] %} style="background-color: {{ theme["colors"]["primary"] }}"{% endif %}>'
    '{{ item["label"] }}</button>{% endfor %}</div>',
    _toggle_prepare,
)


# --- inputs ---


def _measure_input(unit: str, placeholder: str, caption: str) -> KindRenderer:
    def _prepare(attrs: dict, children: Any, theme: dict) -> dict:
        return {
            "unit": unit,
            "placeholder": attrs.get("placeholder") or placeholder,
            "caption": caption,
            "answer_key": attrs.get("answer_key"),
        }

    return snippet_kind(
        '<div class="fn-measure"><div class="fn-measure__field">'
        '<input type="number" placeholder="{{ placeholder }}" readonly'
        '{% if answer_key %} data-answer-key="{{ answer_key }}"{% endif %} '
        'style="color: {{ theme["colors"]["text"] }}">'
        '{% if unit %}<span class="fn-measure__unit">{{ unit }}</span>{% endif %}</div>'
        '<span class="fn-measure__caption">{{ caption }}</span></div>',
        _prepare,
    )


_TEXT_INPUT = snippet_kind(
    '<div class="fn-input"><input type="{% if a["flavor"] == "email" %}email{% else %}text{% endif %}" '
    'placeholder="{{ a["placeholder"] or "..." }}" style="color: {{ theme["colors"]["text"] }}"></div>'
)

_DATE_PICKER = snippet_kind('<div class="fn-date">{{ a["placeholder"] or "Select Date" }}</div>')


# --- data driven ---


def _links_prepare(attrs: dict, children: Any, theme: dict) -> dict:
    return {"links": _records(children), "has_links": isinstance(children, list)}


_LINKS_BOX = snippet_kind(
    '{% if has_links %}<nav class="fn-links">{% for link in links %}'
    '<a href="{{ link["href"] }}" style="color: {{ theme["colors"]["secondary_text"] }}">{{ link["text"] }}</a>'
    "{% endfor %}</nav>{% endif %}",
    _links_prepare,
)

_PROGRESS_BAR = snippet_kind(
    '<div class="fn-progress"><div class="fn-progress__fill" style="background: {{ theme["colors"]["primary"] }}"></div></div>'
)

_ANIMATED_CHART = snippet_kind(
    '<div class="fn-chart" style="border-color: {{ theme["colors"]["primary"] }}33">'
    '<div class="fn-chart__spinner" style="border-top-color: {{ theme["colors"]["primary"] }}"></div></div>'
)

_CHECKOUT_PLANS = [
    {"label": "1-Month Plan", "price": "$49.99/mo", "per": "$1.67/day", "popular": False},
    {"label": "3-Month Plan", "price": "$29.99/mo", "per": "$1.00/day", "popular": True},
    {"label": "6-Month Plan", "price": "$19.99/mo", "per": "$0.67/day", "popular": False},
]


def _checkout_prepare(attrs: dict, children: Any, theme: dict) -> dict:
    disclaimers = attrs.get("disclaimers")
    if not isinstance(disclaimers, list):
        disclaimers = []
    return {
        "plans": _CHECKOUT_PLANS,
        "event": attrs.get("on_checkout") if isinstance(attrs.get("on_checkout"), str) else None,
        "disclaimers": [item for item in disclaimers if isinstance(item, str)],
    }


_CHECKOUT = snippet_kind(
    '<div class="fn-checkout"><div class="fn-checkout__header" style="color: {{ theme["colors"]["primary"] }}">'
    "Your Personalized Plan</div>"
    '{% for plan in plans %}<div class="fn-plan{% if plan["popular"] %} fn-plan--popular{% endif %}">'
    '{% if plan["popular"] %}<span class="fn-plan__badge">Most Popular</span>{% endif %}'
    '<span class="fn-plan__label">{{ plan["label"] }}</span>'
    '<span class="fn-plan__price">{{ plan["price"] }}</span>'
    '<span class="fn-plan__per">{{ plan["per"] }}</span></div>{% endfor %}'
    '<button class="fn-button" type="button"{% if event %} data-event="{{ event }}"{% endif %} '
    'style="background-color: {{ theme["colors"]["primary"] }}">Get My Plan</button>'
    '{% for line in disclaimers %}<p class="fn-checkout__disclaimer">{{ line }}</p>{% endfor %}</div>',
    _checkout_prepare,
)


BUILTIN_KINDS: Dict[str, KindRenderer] = {
    "Page": _PAGE,
    "Box": _BOX,
    "Gap": _GAP,
    "Divider": _DIVIDER,
    "Text": _TEXT,
    "Title": _TITLE,
    "Subtitle": _SUBTITLE,
    "RichText": _TEXT,
    "ImageBox": _IMAGE_BOX,
    "Button": _BUTTON,
    "ItemPicker": _ITEM_PICKER,
    "FocusAreas": _FOCUS_AREAS,
    "UnitToggle": _UNIT_TOGGLE,
    "LengthInput": _measure_input("cm", "170", "Height Input"),
    "WeightInput": _measure_input("kg", "75", "Weight Input"),
    "NumericInput": _measure_input("", "35", "Numeric Input"),
    "DatePicker": _DATE_PICKER,
    "TextInput": _TEXT_INPUT,
    "NotificationCard": _NOTIFICATION_CARD,
    "LinksBox": _LINKS_BOX,
    "PageProgressBar": _PROGRESS_BAR,
    "AnimatedChart": _ANIMATED_CHART,
    "Checkout": _CHECKOUT,
}
