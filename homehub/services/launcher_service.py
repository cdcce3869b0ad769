"""
🔔 Launcher Service - Just-Notify timers and grammar review
==========================================================

Wraps two local command-line tools:

- ``jn`` (Just-Notify): started detached with its output in a log file,
  stopped per category, reporting the elapsed time it logged
- ``neospeller``: grammar review of a text passed on stdin
"""

import os
import subprocess
import threading
import time
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional

from pydantic import BaseModel, Field, model_validator
from pydantic import ValidationError as SchemaValidationError

from . import BaseService, ServiceResult
from ..config import load_config
from ..config_schema import GatewayConfig
from ..errors import ConfigurationError, CommandError, ValidationError
from ..utils.commands import run_command


class JnRequest(BaseModel):
    """Body of ``POST /manage/jn``."""

    category: str = Field(min_length=1)
    time: str = Field(default="")
    description: str = Field(default="")
    notification: str = Field(default="")
    unlimited: bool = Field(default=False)
    headless: bool = Field(default=False)

    model_config = {
        "str_strip_whitespace": True,
    }

    @model_validator(mode='after')
    def require_time_unless_unlimited(self) -> "JnRequest":
        if not self.time and not self.unlimited:
            raise ValueError("time is required unless unlimited is set")
        return self


class GrammarRequest(BaseModel):
    text: str = Field(min_length=1)


def build_jn_args(request: JnRequest) -> List[str]:
    """``-d [-H] -t <time> -c <category> [-u] [-l <description>] [-n <notification>]``"""
    args = ["-d"]
    if request.headless:
        args.append("-H")
    if request.time:
        args.extend(["-t", request.time])
    args.extend(["-c", request.category])
    if request.unlimited:
        args.append("-u")
    if request.description:
        args.extend(["-l", request.description])
    if request.notification:
        args.extend(["-n", request.notification])
    return args


def last_elapsed(log_text: str) -> str:
    """The "Time elapsed..." fragment of the last line mentioning "elapsed"."""
    for line in reversed(log_text.splitlines()):
        if "elapsed" in line:
            idx = line.find("Time elapsed")
            return line[idx:].strip() if idx != -1 else ""
    return ""


def _parse(model, payload: Optional[Dict[str, Any]]):
    try:
        return model.model_validate(payload or {})
    except SchemaValidationError as exc:
        raise ValidationError(
            f"Invalid request: {exc.errors()[0].get('msg', 'invalid body')}",
            data={"errors": [{"field": ".".join(str(p) for p in e.get("loc", ())), "msg": e.get("msg")} for e in exc.errors()]},
        ) from exc


class LauncherService(BaseService):
    """Service for the jn launcher and the grammar reviewer."""

    def __init__(
        self,
        config: Optional[GatewayConfig] = None,
        *,
        runner: Callable[..., str] = run_command,
        spawner: Callable[..., subprocess.Popen] = subprocess.Popen,
        stop_wait: float = 0.5,
    ):
        super().__init__("launcher")
        self.config = config or load_config()
        self._run = runner
        self._spawn = spawner
        self.stop_wait = stop_wait

    @staticmethod
    def _binary(path: str, label: str) -> str:
        resolved = os.path.expanduser(path)
        if not os.path.exists(resolved):
            raise ConfigurationError(f"{label} binary not found", data={"path": resolved})
        return resolved

    def _reap(self, proc: subprocess.Popen, category: str) -> None:
        code = proc.wait()
        if code != 0:
            self.logger.warning("jn process ended with error", extra={"category": category, "exit_code": code})
        else:
            self.logger.info("jn process finished", extra={"category": category})

    def launch_jn(self, payload: Optional[Dict[str, Any]]) -> ServiceResult:
        try:
            request = _parse(JnRequest, payload)
            jn_path = self._binary(self.config.jn_path, "Just-Notify")
            argv = [jn_path] + build_jn_args(request)

            log_path = Path(self.config.jn_log_path)
            try:
                with log_path.open("w", encoding="utf-8") as log_file:
                    proc = self._spawn(
                        argv,
                        stdout=log_file,
                        stderr=subprocess.STDOUT,
                        start_new_session=True,
                    )
            except OSError as exc:
                raise CommandError(f"Failed to start Just-Notify: {exc}") from exc

            threading.Thread(
                target=self._reap,
                args=(proc, request.category),
                name=f"jn-reaper-{request.category}",
                daemon=True,
            ).start()
            self.logger.info("jn started", extra={"category": request.category, "args": argv[1:]})
            return self._success_result(
                data={"category": request.category},
                message="Just-Notify started successfully",
            )
        except Exception as e:
            return self._handle_error(e, "launch_jn")

    def stop_jn(self, category: Optional[str]) -> ServiceResult:
        try:
            if not category:
                raise ValidationError("category is required", data={"field": "category"})
            jn_path = self._binary(self.config.jn_path, "Just-Notify")
            self._run([jn_path, "-k", "-c", category])

            # jn writes its summary on exit
            time.sleep(self.stop_wait)
            try:
                log_text = Path(self.config.jn_log_path).read_text(encoding="utf-8")
            except OSError as exc:
                raise CommandError(f"Failed to read termination status: {exc}") from exc

            elapsed = last_elapsed(log_text)
            return self._success_result(
                data={"category": category, "elapsed": elapsed},
                message=f"Just-Notify terminated: {elapsed}",
            )
        except Exception as e:
            return self._handle_error(e, "stop_jn")

    def review_grammar(self, payload: Optional[Dict[str, Any]]) -> ServiceResult:
        try:
            request = _parse(GrammarRequest, payload)
            neospeller = self._binary(self.config.neospeller_path, "Neospeller")
            env = dict(os.environ)
            if self.config.openai_api_key:
                env["OPENAI_API_KEY"] = self.config.openai_api_key
            corrections = self._run(
                [neospeller, "--lang", "text"],
                input_text=request.text,
                env=env,
                merge_stderr=True,
            )
            return self._success_result(data={"corrections": corrections})
        except Exception as e:
            return self._handle_error(e, "review_grammar")

    def health_check(self) -> ServiceResult:
        base_health = super().health_check()
        if not base_health.success:
            return base_health
        tools = {
            "jn": os.path.exists(os.path.expanduser(self.config.jn_path)),
            "neospeller": os.path.exists(os.path.expanduser(self.config.neospeller_path)),
        }
        return self._success_result(
            data={
                "service": self.name,
                "status": "healthy" if all(tools.values()) else "degraded",
                "tools": tools,
            }
        )
