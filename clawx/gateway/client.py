"""Typed wrapper around GatewayManager.rpc for the gateway's method namespaces."""

from __future__ import annotations

from typing import Any, Literal

from clawx.gateway.manager import GatewayManager
from clawx.gateway.protocol import safe_dict

ChannelType = Literal["whatsapp", "telegram", "discord", "slack", "wechat"]


def _as_list(value: Any) -> list[dict[str, Any]]:
    return [row for row in value if isinstance(row, dict)] if isinstance(value, list) else []


class GatewayClient:
    """Channel, skill, chat and system calls against a running gateway."""

    def __init__(self, manager: GatewayManager):
        self.manager = manager

    async def _rpc(self, method: str, params: Any = None) -> Any:
        return await self.manager.rpc(method, params)

    # channels

    async def list_channels(self) -> list[dict[str, Any]]:
        return _as_list(await self._rpc("channels.list"))

    async def get_channel(self, channel_id: str) -> dict[str, Any]:
        return safe_dict(await self._rpc("channels.get", {"channelId": channel_id}))

    async def connect_channel(self, channel_id: str) -> None:
        await self._rpc("channels.connect", {"channelId": channel_id})

    async def disconnect_channel(self, channel_id: str) -> None:
        await self._rpc("channels.disconnect", {"channelId": channel_id})

    async def get_channel_qr_code(self, channel_type: ChannelType) -> str:
        """QR payload for channels paired by scanning (e.g. WhatsApp)."""
        result = await self._rpc("channels.getQRCode", {"channelType": channel_type})
        return str(result or "")

    # skills

    async def list_skills(self) -> list[dict[str, Any]]:
        return _as_list(await self._rpc("skills.list"))

    async def enable_skill(self, skill_id: str) -> None:
        await self._rpc("skills.enable", {"skillId": skill_id})

    async def disable_skill(self, skill_id: str) -> None:
        await self._rpc("skills.disable", {"skillId": skill_id})

    async def get_skill_config(self, skill_id: str) -> dict[str, Any]:
        return safe_dict(await self._rpc("skills.getConfig", {"skillId": skill_id}))

    async def update_skill_config(self, skill_id: str, config: dict[str, Any]) -> None:
        await self._rpc("skills.updateConfig", {"skillId": skill_id, "config": config})

    # chat

    async def send_message(self, content: str, channel_id: str | None = None) -> dict[str, Any]:
        params: dict[str, Any] = {"content": content}
        if channel_id:
            params["channelId"] = channel_id
        return safe_dict(await self._rpc("chat.send", params))

    async def get_chat_history(self, limit: int = 50, offset: int = 0) -> list[dict[str, Any]]:
        return _as_list(await self._rpc("chat.history", {"limit": limit, "offset": offset}))

    async def clear_chat_history(self) -> None:
        await self._rpc("chat.clear")

    # system

    async def get_health(self) -> dict[str, Any]:
        return safe_dict(await self._rpc("system.health"))

    async def get_config(self) -> dict[str, Any]:
        return safe_dict(await self._rpc("system.config"))

    async def update_config(self, config: dict[str, Any]) -> None:
        await self._rpc("system.updateConfig", config)
