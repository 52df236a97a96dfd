"""
TasteCRM - Unified LLM Gateway
Single interface for every generative-model call (DNA synthesis, column
mapping, segmentation, reports, collateral).

Features:
- Ollama-compatible HTTP client with health checks
- JSON mode for structured-output flows
- Request tracing with stage names
- Logging redaction (prompt preview only, no secrets in logs)

There are no automatic retries: a failed call surfaces to the caller, which
either downgrades it (per-row enrichment) or reports it (batch analyzers).
"""

import json
import logging
import time
import uuid
from urllib.request import urlopen, Request
from urllib.error import URLError, HTTPError

from tastecrm.config import OLLAMA_HOST, OLLAMA_MODEL, OLLAMA_TIMEOUT, LLM_API_KEY

logger = logging.getLogger("tastecrm.flows.llm_gateway")


# ─── ERRORS ────────────────────────────────────────────────────

class LLMError(Exception):
    """Raised when the model endpoint returns an error or is unreachable."""
    pass


class ModelNotFoundError(LLMError):
    """Raised when the requested model is not available."""
    pass


# ─── OLLAMA CLIENT ─────────────────────────────────────────────

class OllamaClient:
    """Ollama HTTP client (also works against Ollama-compatible hosted endpoints)."""

    def __init__(self, host: str = None, model: str = None, timeout: int = None,
                 api_key: str = None):
        self.host = (host or OLLAMA_HOST).rstrip("/")
        self.model = model or OLLAMA_MODEL
        self.timeout = timeout or OLLAMA_TIMEOUT
        self.api_key = LLM_API_KEY if api_key is None else api_key
        self._healthy = None

    def _headers(self) -> dict:
        headers = {"Content-Type": "application/json"}
        if self.api_key:
            headers["Authorization"] = f"Bearer {self.api_key}"
        return headers

    def health_check(self) -> dict:
        """Check if the endpoint is reachable and the model is available.

        Returns:
            {"healthy": bool, "models": [...], "model_available": bool, "error": str|None}
        """
        result = {"healthy": False, "models": [], "model_available": False, "error": None}

        try:
            req = Request(f"{self.host}/api/tags", headers=self._headers(), method="GET")
            with urlopen(req, timeout=10) as resp:
                data = json.loads(resp.read().decode())
                models = [m.get("name", "") for m in data.get("models", [])]
                result["models"] = models
                result["healthy"] = True

                # Match by prefix so "qwen2.5" finds "qwen2.5:7b"
                model_base = self.model.split(":")[0]
                result["model_available"] = any(
                    self.model in m or model_base in m for m in models
                )

                if not result["model_available"]:
                    result["error"] = (
                        f"Model '{self.model}' not found. Available: {', '.join(models[:5])}. "
                        f"Run: ollama pull {self.model}"
                    )

        except URLError as e:
            result["error"] = (
                f"Cannot reach model endpoint at {self.host}. "
                f"Is the service running? Try: ollama serve"
            )
            logger.warning(f"LLM health check failed: {e}")
        except (ValueError, OSError) as e:
            result["error"] = f"Unexpected error during health check: {e}"
            logger.error(f"LLM health check error: {e}")

        self._healthy = result["healthy"] and result["model_available"]
        return result

    def generate(self, prompt: str, model: str = None, temperature: float = 0.7,
                 max_tokens: int = 1024, system: str = None, json_mode: bool = False) -> dict:
        """Send one generation request.

        Args:
            prompt: The user prompt.
            model: Override model (uses default if None).
            temperature: Sampling temperature.
            max_tokens: Max tokens to generate.
            system: Optional system prompt.
            json_mode: Ask the server to constrain output to JSON.

        Returns:
            {"response": str, "model": str, "total_duration": int, "eval_count": int}

        Raises:
            LLMError: On any transport or server failure.
            ModelNotFoundError: If the model is not available.
        """
        model = model or self.model
        payload = {
            "model": model,
            "prompt": prompt,
            "stream": False,
            "options": {
                "temperature": temperature,
                "num_predict": max_tokens,
            },
        }
        if system:
            payload["system"] = system
        if json_mode:
            payload["format"] = "json"

        req = Request(
            f"{self.host}/api/generate",
            data=json.dumps(payload).encode("utf-8"),
            headers=self._headers(),
            method="POST",
        )

        try:
            with urlopen(req, timeout=self.timeout) as resp:
                data = json.loads(resp.read().decode())
        except HTTPError as e:
            try:
                error_body = e.read().decode()
            except OSError:
                error_body = ""
            if e.code == 404 or ("model" in error_body.lower() and "not found" in error_body.lower()):
                raise ModelNotFoundError(f"Model '{model}' not found. Run: ollama pull {model}")
            raise LLMError(f"HTTP {e.code} from {self.host}: {error_body[:200]}")
        except URLError as e:
            raise LLMError(f"Cannot reach model endpoint at {self.host}: {e.reason}")
        except (TimeoutError, OSError) as e:
            raise LLMError(f"Model request to {self.host} failed: {e}")
        except ValueError as e:
            raise LLMError(f"Model endpoint returned undecodable JSON: {e}")

        return {
            "response": data.get("response", ""),
            "model": data.get("model", model),
            "total_duration": data.get("total_duration", 0),
            "eval_count": data.get("eval_count", 0),
        }


# ─── LLM GATEWAY (unified interface) ──────────────────────────

class LLMGateway:
    """Unified LLM interface with request tracing.

    Usage:
        gateway = LLMGateway()
        result = gateway.generate(
            prompt="Segment these customers...",
            stage_name="segments",
            json_mode=True,
        )
    """

    def __init__(self, ollama_host: str = None, ollama_model: str = None):
        self.ollama = OllamaClient(host=ollama_host, model=ollama_model)
        self._initialized = False

    def initialize(self) -> dict:
        """Run startup health check.

        Returns:
            {"provider": "ollama"|"none", "status": "ok"|"unavailable", "details": {...}}
        """
        health = self.ollama.health_check()
        self._initialized = True

        if health["healthy"] and health["model_available"]:
            logger.info(f"LLM Gateway ready: {self.ollama.host}, model {self.ollama.model}")
            return {"provider": "ollama", "status": "ok", "details": health}

        logger.error(f"LLM Gateway unavailable: {health.get('error', 'unknown')}")
        return {"provider": "none", "status": "unavailable", "details": health}

    def generate(self, prompt: str, stage_name: str = "unknown",
                 model: str = None, temperature: float = 0.7,
                 max_tokens: int = 1024, system: str = None,
                 json_mode: bool = False, request_id: str = None) -> dict:
        """Generate text.

        Returns:
            {"response": str, "provider": str, "model": str, "request_id": str,
             "stage": str, "duration_ms": int}

        Raises:
            LLMError: If the call fails.
        """
        request_id = request_id or uuid.uuid4().hex[:12]
        start = time.time()

        # Redact prompt for logging (first 80 chars only)
        prompt_preview = prompt[:80].replace("\n", " ") + ("..." if len(prompt) > 80 else "")
        logger.info(f"[{request_id}] LLM request: stage={stage_name}, prompt='{prompt_preview}'",
                    extra={"request_id": request_id, "stage": stage_name})

        try:
            result = self.ollama.generate(
                prompt=prompt, model=model, temperature=temperature,
                max_tokens=max_tokens, system=system, json_mode=json_mode,
            )
        except LLMError as e:
            logger.error(f"[{request_id}] LLM call failed: {e}",
                         extra={"request_id": request_id, "stage": stage_name})
            raise

        duration_ms = int((time.time() - start) * 1000)
        logger.info(f"[{request_id}] LLM responded in {duration_ms}ms, "
                    f"tokens={result.get('eval_count', '?')}",
                    extra={"request_id": request_id, "stage": stage_name,
                           "duration_ms": duration_ms})
        return {
            "response": result["response"],
            "provider": "ollama",
            "model": result.get("model", self.ollama.model),
            "request_id": request_id,
            "stage": stage_name,
            "duration_ms": duration_ms,
        }


# ─── MODULE-LEVEL SINGLETON ───────────────────────────────────

_gateway_instance = None


def get_gateway() -> LLMGateway:
    """Get or create the module-level LLM Gateway singleton."""
    global _gateway_instance
    if _gateway_instance is None:
        _gateway_instance = LLMGateway()
    return _gateway_instance
