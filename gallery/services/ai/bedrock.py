import json
from ...errors import ProviderError
from ...utils.logging import logger
from ...utils.timeout import run_with_timeout
from .aws import aws_client
from .template import template_description

DESCRIBE_PROMPT = (
    "Write two factual sentences describing what is actually visible in a photo containing: {tags}. "
    "Only describe what is definitively present based on these tags. Do not add imagined elements, "
    "mood, or context that cannot be confirmed from the tags alone."
)


def build_request_body(model_id, prompt, max_tokens):
    """Shape the InvokeModel payload for the model family behind model_id."""
    if model_id.startswith("anthropic.claude"):
        return {
            "anthropic_version": "bedrock-2023-05-31",
            "max_tokens": max_tokens,
            "messages": [{"role": "user", "content": [{"type": "text", "text": prompt}]}],
        }
    if model_id.startswith("amazon.titan"):
        return {
            "inputText": prompt,
            "textGenerationConfig": {"maxTokenCount": max_tokens, "temperature": 0.7, "topP": 0.9},
        }
    if model_id.startswith("amazon.nova"):
        return {
            "messages": [{"role": "user", "content": [{"text": prompt}]}],
            "inferenceConfig": {"max_new_tokens": max_tokens, "temperature": 0.7, "top_p": 0.9},
        }
    if model_id.startswith("meta.llama"):
        return {"prompt": prompt, "max_gen_len": max_tokens, "temperature": 0.7, "top_p": 0.9}
    return {"prompt": prompt, "max_tokens": max_tokens}


def parse_output_text(model_id, body):
    try:
        if model_id.startswith("anthropic.claude"):
            return (body.get("content") or [{}])[0].get("text", "").strip()
        if model_id.startswith("amazon.titan"):
            return (body.get("results") or [{}])[0].get("outputText", "").strip()
        if model_id.startswith("amazon.nova"):
            content = body["output"]["message"]["content"]
            return (content[0].get("text") or "").strip()
        if model_id.startswith("meta.llama"):
            return (body.get("generation") or "").strip()
    except (KeyError, IndexError, TypeError, AttributeError) as e:
        raise ProviderError(f"Unexpected Bedrock response shape: {e}")
    return (body.get("text") or body.get("completion") or "").strip()


def invoke_model(model_id, request_body, config):
    """Call InvokeModel and return the decoded JSON body."""
    timeout_ms = config.get("BEDROCK_TIMEOUT_MS")
    client = aws_client("bedrock-runtime", config, timeout_ms)

    def call():
        response = client.invoke_model(
            modelId=model_id,
            contentType="application/json",
            accept="application/json",
            body=json.dumps(request_body),
        )
        return json.loads(response["body"].read())

    return run_with_timeout(call, timeout_ms)


def generate_description(tags, config):
    if not tags:
        return "An image."
    model_id = config.get("BEDROCK_MODEL_ID") or "amazon.titan-text-express-v1"
    prompt = DESCRIBE_PROMPT.format(tags=", ".join(tags))
    body = build_request_body(model_id, prompt, config.get("BEDROCK_MAX_TOKENS", 60))
    logger.info(f"Requesting Bedrock description with {model_id}")
    text = parse_output_text(model_id, invoke_model(model_id, body, config))
    return text or template_description(tags)
