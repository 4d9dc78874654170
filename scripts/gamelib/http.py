import asyncio, random
from contextlib import asynccontextmanager
from typing import Dict, Optional

import httpx
from aiolimiter import AsyncLimiter

RETRYABLE = {408, 425, 429, 500, 502, 503, 504}

BROWSER_UA = (
   "Mozilla/5.0 (Windows NT 10.0; Win64; x64) "
   "AppleWebKit/537.36 (KHTML, like Gecko) "
   "Chrome/126.0.0.0 Safari/537.36"
)

# Failures the search core treats as "no data from this source".
# ValueError covers malformed JSON bodies (json.JSONDecodeError).
UPSTREAM_ERRORS = (httpx.HTTPError, ValueError)

@asynccontextmanager
async def make_client(*, timeout: float = 8.0, user_agent: str = BROWSER_UA):
   async with httpx.AsyncClient(http2=True, timeout=timeout, headers={
      "User-Agent": user_agent,
      "Accept": "application/json, text/html;q=0.9,*/*;q=0.8",
      "Accept-Language": "en-US,en;q=0.9",
   }) as client:
      yield client

class DomainLimiter:
   def __init__(self, rps: float):
      self.limiter = AsyncLimiter(rps, time_period=1)

   async def wait(self):
      await self.limiter.acquire()

def _backoff(attempt: int, jitter: float) -> float:
   return min(8.0, (2 ** (attempt - 1)) * 0.5 + random.random() * jitter)

async def fetch(client: httpx.AsyncClient, method: str, url: str, *,
                params: Optional[Dict[str, str]] = None,
                headers: Optional[Dict[str, str]] = None,
                limiter: DomainLimiter | None = None,
                max_retries: int = 1) -> httpx.Response:
   attempt = 0
   while True:
      if limiter:
         await limiter.wait()
      try:
         r = await client.request(
            method,
            url,
            params=params,
            headers=headers,
            follow_redirects=True,
         )
         if r.status_code in RETRYABLE:
            attempt += 1
            if attempt > max_retries:
               r.raise_for_status()
               return r
            wait = _backoff(attempt, 0.3)
            ra = r.headers.get("Retry-After")
            if ra:
               try:
                  wait = min(float(ra), 30.0)
               except ValueError:
                  pass
            await asyncio.sleep(wait)
            continue
         r.raise_for_status()
         return r
      except (
         httpx.ReadTimeout,
         httpx.ConnectTimeout,
         httpx.RemoteProtocolError,
         httpx.ReadError,
      ):
         attempt += 1
         if attempt > max_retries:
            raise
         await asyncio.sleep(_backoff(attempt, 0.2))
