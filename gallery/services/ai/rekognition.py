import re
from ...utils.logging import logger
from ...utils.timeout import run_with_timeout
from .aws import aws_client

TAG_ALIASES = {
    "dish": "Food",
    "meal": "Food",
    "cuisine": "Food",
    "tableware": "Utensils",
    "human": "Person",
}
OCR_WORD = re.compile(r"^[A-Za-z0-9][A-Za-z0-9\-&+.]{1,30}$")
MAX_COLORS = 3


def normalize_tag(name):
    s = name.strip()
    return TAG_ALIASES.get(s.lower(), s)


def rgb_to_hex(r, g, b):
    return "#" + "".join(f"{max(0, min(255, int(round(x)))):02x}" for x in (r, g, b))


def extract_tags(labels, config, extra_words=()):
    min_conf = config.get("AI_MIN_CONFIDENCE", 80)
    max_labels = config.get("AI_MAX_LABELS", 10)
    include_parents = config.get("AI_INCLUDE_PARENT_TAGS", True)

    seen = {}
    for label in labels or []:
        if (label.get("Confidence") or 0) < min_conf:
            continue
        if label.get("Name"):
            seen.setdefault(normalize_tag(label["Name"]), None)
        if include_parents:
            for parent in label.get("Parents") or []:
                if parent and parent.get("Name"):
                    seen.setdefault(normalize_tag(parent["Name"]), None)
    for word in extra_words:
        seen.setdefault(word, None)

    tags = list(seen)
    if config.get("AI_EXCLUDE_PERSON_FROM_TAGS"):
        tags = [t for t in tags if t.lower() != "person"]
    return tags[:max_labels]


def extract_colors(image_properties):
    dominant = sorted(
        (image_properties or {}).get("DominantColors") or [],
        key=lambda c: c.get("PixelPercent") or 0,
        reverse=True,
    )
    colors = []
    for c in dominant:
        hex_color = rgb_to_hex(c.get("Red") or 0, c.get("Green") or 0, c.get("Blue") or 0)
        if hex_color not in colors:
            colors.append(hex_color)
        if len(colors) >= MAX_COLORS:
            break
    return colors


def detect_text_words(client, image_bytes, config):
    min_conf = config.get("AI_MIN_CONFIDENCE", 80)
    res = client.detect_text(Image={"Bytes": image_bytes})
    words = []
    for det in res.get("TextDetections") or []:
        if det.get("Type") != "WORD" or (det.get("Confidence") or 0) < min_conf:
            continue
        w = (det.get("DetectedText") or "").strip()
        if OCR_WORD.match(w) and w not in words:
            words.append(w)
    return words[:config.get("AI_OCR_MAX_WORDS", 6)]


def _analyze(image_bytes, config):
    timeout_ms = config.get("REKOGNITION_TIMEOUT_MS")
    client = aws_client("rekognition", config, timeout_ms)
    response = client.detect_labels(
        Image={"Bytes": image_bytes},
        MaxLabels=max(config.get("AI_MAX_LABELS", 10), 20),
        MinConfidence=config.get("AI_MIN_CONFIDENCE", 80),
        Features=["GENERAL_LABELS", "IMAGE_PROPERTIES"],
    )

    words = []
    if config.get("AI_OCR_ENABLED", True):
        try:
            words = detect_text_words(client, image_bytes, config)
        except Exception as e:
            # OCR is best-effort
            logger.warning(f"OCR detect_text failed: {e}")

    tags = extract_tags(response.get("Labels"), config, words)
    colors = extract_colors(response.get("ImageProperties"))
    return tags, colors


def analyze_tags_and_colors(image_bytes, config):
    """Label an image with Rekognition and return (tags, colors)."""
    tags, colors = run_with_timeout(_analyze, config.get("REKOGNITION_TIMEOUT_MS"), image_bytes, config)
    logger.info(f"Rekognition returned {len(tags)} tags, colors={colors}")
    return tags, colors
