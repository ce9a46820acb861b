from __future__ import annotations
import asyncio
import logging
from typing import Optional

import aiohttp

logger = logging.getLogger(__name__)

CLOUDFLARE_MODEL = '@cf/black-forest-labs/flux-2-klein-4b'


class IllustrationService:
    """Renders a fun-fact illustration through Cloudflare Workers AI.

    ``generate`` returns a ``data:`` URL, or None when the service is not
    configured or the request fails in any way.
    """

    def __init__(self, api_token: Optional[str], account_id: Optional[str], timeout: float = 60.0):
        self.api_token = api_token
        self.account_id = account_id
        self.timeout = timeout

    @property
    def configured(self) -> bool:
        return bool(self.api_token and self.account_id)

    @property
    def url(self) -> str:
        return f"https://api.cloudflare.com/client/v4/accounts/{self.account_id}/ai/run/{CLOUDFLARE_MODEL}"

    async def generate(self, prompt: str) -> Optional[str]:
        if not self.configured:
            return None
        form = aiohttp.FormData()
        form.add_field('prompt', prompt)
        form.add_field('steps', '25')
        form.add_field('width', '1024')
        form.add_field('height', '1024')
        try:
            async with aiohttp.ClientSession(timeout=aiohttp.ClientTimeout(total=self.timeout)) as http:
                async with http.post(self.url, data=form, headers={'Authorization': f'Bearer {self.api_token}'}) as resp:
                    if resp.status != 200:
                        logger.error("Cloudflare AI API error: %s %s", resp.status, await resp.text())
                        return None
                    payload = await resp.json()
        except (aiohttp.ClientError, asyncio.TimeoutError, ValueError) as exc:
            logger.error("Image generation error: %s", exc)
            return None
        image = (payload.get('result') or {}).get('image') if isinstance(payload, dict) else None
        if not image:
            logger.error("Cloudflare AI: no image in response")
            return None
        return f"data:image/png;base64,{image}"
