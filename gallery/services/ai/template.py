def template_description(tags):
    """Deterministic last-resort description from the top three tags."""
    top = [t for t in tags if t][:3]
    if not top:
        return "An image."
    return f"A photo of {', '.join(top)}."
