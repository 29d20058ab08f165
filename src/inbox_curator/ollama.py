import json
import time
import urllib.error
import urllib.request
from pathlib import Path
from typing import Any, Dict, Optional

from .ai_log import append_ai_log, classifier_log_entry


class OllamaClient:
    def __init__(
        self,
        base_url: str,
        log_path: Optional[Path] = None,
        *,
        fallback_model: Optional[str] = None,
        timeout: float = 60,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.log_path = log_path
        self.fallback_model = fallback_model
        self.timeout = timeout

    def generate(
        self,
        *,
        model: str,
        prompt: str,
        system: Optional[str] = None,
        temperature: Optional[float] = None,
        log_context: Optional[Dict[str, Any]] = None,
    ) -> str:
        fallback = self.fallback_model if self.fallback_model != model else None
        try:
            return self._generate_once(model, prompt, system, temperature, log_context)
        except RuntimeError as exc:
            if not fallback:
                raise
            try:
                return self._generate_once(
                    fallback, prompt, system, temperature, log_context, fallback_used=True
                )
            except RuntimeError as fallback_exc:
                raise RuntimeError(
                    f"Ollama failed for model '{model}' and fallback '{fallback}': "
                    f"{exc}; {fallback_exc}"
                ) from fallback_exc

    def _post(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        req = urllib.request.Request(
            f"{self.base_url}/api/generate",
            data=json.dumps(payload).encode("utf-8"),
            headers={"Content-Type": "application/json"},
            method="POST",
        )
        try:
            with urllib.request.urlopen(req, timeout=self.timeout) as resp:
                raw = resp.read().decode("utf-8")
        except (urllib.error.URLError, TimeoutError) as exc:
            raise RuntimeError(f"Ollama request failed: {exc}") from exc
        try:
            parsed = json.loads(raw)
        except json.JSONDecodeError as exc:
            raise RuntimeError("Ollama returned invalid JSON") from exc
        if not isinstance(parsed, dict) or "response" not in parsed:
            raise RuntimeError("Ollama response missing 'response' field")
        return parsed

    def _generate_once(
        self,
        model: str,
        prompt: str,
        system: Optional[str],
        temperature: Optional[float],
        log_context: Optional[Dict[str, Any]],
        *,
        fallback_used: bool = False,
    ) -> str:
        payload: Dict[str, Any] = {"model": model, "prompt": prompt, "stream": False}
        if system:
            payload["system"] = system
        if temperature is not None:
            payload["options"] = {"temperature": temperature}
        start = time.perf_counter()
        try:
            parsed = self._post(payload)
        except RuntimeError as exc:
            cause = exc.__cause__
            self._log(model, prompt, "", start, type(cause or exc).__name__, log_context, fallback_used)
            raise
        response_text = str(parsed["response"])
        self._log(model, prompt, response_text, start, None, log_context, fallback_used)
        return response_text

    def _log(
        self,
        model: str,
        prompt: str,
        response_text: str,
        start: float,
        error_type: Optional[str],
        context: Optional[Dict[str, Any]],
        fallback_used: bool,
    ) -> None:
        if not self.log_path:
            return
        entry = classifier_log_entry(
            model=model,
            prompt_chars=len(prompt),
            response_chars=len(response_text),
            duration_ms=int((time.perf_counter() - start) * 1000),
            error_type=error_type,
            context=context,
            fallback_used=fallback_used,
        )
        append_ai_log(self.log_path, entry)
