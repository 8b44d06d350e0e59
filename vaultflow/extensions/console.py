"""
Console interaction port for command-line runs.

Prompts on the terminal; an empty answer to a selection, or EOF, counts as
cancelling the request.
"""

import asyncio
from typing import Callable, Optional

from vaultflow.interaction import InteractionRequest, InteractionResponse


class ConsoleInteractionPort:
    def __init__(self, input_func: Callable[[str], str] = input, output_func: Callable[[str], None] = print):
        self.input = input_func
        self.output = output_func

    async def _ask(self, prompt: str) -> Optional[str]:
        try:
            return await asyncio.to_thread(self.input, prompt)
        except EOFError:
            return None

    async def request(self, request: InteractionRequest) -> Optional[InteractionResponse]:
        if request.title:
            self.output(f"\n== {request.title} ==")
        if request.message:
            self.output(request.message)

        if request.kind == "confirm":
            answer = await self._ask("Proceed? [y/N] ")
            if answer is None or answer.strip().lower() not in ("y", "yes"):
                return None
            return InteractionResponse(value=True)

        if request.kind == "dialog":
            return await self._dialog(request)

        default = request.payload.get("default") or ""
        hint = f" [{default}]" if default else ""
        answer = await self._ask(f"{request.kind}{hint}: ")
        if answer is None:
            return None
        value = answer.strip() or default
        if not value:
            return None
        return InteractionResponse(value=value)

    async def _dialog(self, request: InteractionRequest) -> Optional[InteractionResponse]:
        payload = request.payload
        defaults = payload.get("defaults") or {}
        selected = []

        if request.options:
            for idx, option in enumerate(request.options, start=1):
                self.output(f"  {idx}. {option}")
            answer = await self._ask("Select (comma-separated numbers): ")
            if answer is None:
                return None
            for token in answer.split(","):
                token = token.strip()
                if token.isdigit() and 1 <= int(token) <= len(request.options):
                    selected.append(request.options[int(token) - 1])
            if not selected:
                selected = list(defaults.get("selected") or [])
            if not payload.get("multiSelect"):
                selected = selected[:1]

        text = None
        if payload.get("inputTitle"):
            text = await self._ask(f"{payload['inputTitle']}: ")
            if text is None:
                return None
            text = text or defaults.get("input") or ""

        button = payload.get("button1") or "OK"
        if payload.get("button2"):
            answer = await self._ask(f"[1] {button}  [2] {payload['button2']}: ")
            if answer is None:
                return None
            if answer.strip() == "2":
                button = payload["button2"]

        return InteractionResponse(button=button, selected=selected, input=text)
