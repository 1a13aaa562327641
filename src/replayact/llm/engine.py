# -*- coding: utf-8 -*-
# Copyright (c) 2024 OSU Natural Language Processing Group
#
# Licensed under the OpenRAIL-S License;
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     https://www.licenses.ai/ai-pubs-open-rails-vz1
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.
import os
import time
import asyncio
import logging

from dotenv import load_dotenv
import litellm

EMPTY_API_KEY = "Your API KEY Here"

DEFAULT_MODEL = "openrouter/qwen/qwen-2.5-vl-72b-instruct"

logger = logging.getLogger(__name__)


def load_openrouter_api_key():
    load_dotenv()
    assert (
            os.getenv("OPENROUTER_API_KEY") is not None and
            os.getenv("OPENROUTER_API_KEY") != EMPTY_API_KEY
    ), "must pass on the api_key or set OPENROUTER_API_KEY in the environment"
    return os.getenv("OPENROUTER_API_KEY")


def engine_factory(api_key=None, model=None, **kwargs):
    """
    Create a generic OpenRouter LLM engine.
    Works with any vision model accessible via OpenRouter.
    """
    if model is None:
        model = DEFAULT_MODEL

    if api_key and api_key != EMPTY_API_KEY:
        os.environ["OPENROUTER_API_KEY"] = api_key
    else:
        load_openrouter_api_key()

    # LiteLLM routes on the openrouter/ prefix
    if not model.startswith("openrouter/"):
        model = f"openrouter/{model}"

    return RouterEngine(model=model, **kwargs)


class Engine:
    def __init__(
            self,
            stop=None,
            rate_limit=-1,
            model=None,
            temperature=0,
            **kwargs,
    ) -> None:
        """
            Base class to init an engine

        Args:
            stop (list, optional): Tokens indicate stop of sequence. Defaults to None.
            rate_limit (int, optional): Max number of requests per minute. Defaults to -1.
            model (str, optional): LiteLLM model name. Defaults to None.
            temperature (float, optional): Sampling temperature. Defaults to 0.
        """
        self.stop = stop
        self.temperature = temperature
        self.model = model
        # convert rate limit to minimum request interval
        self.request_interval = 0 if rate_limit == -1 else 60.0 / rate_limit
        self.next_avil_time = 0
        self.request_timeout_s = kwargs.get("request_timeout_s", 120)
        logger.info(f"Initializing model {self.model}")


class RouterEngine(Engine):
    def __init__(self, **kwargs) -> None:
        """
        Init a generic engine via OpenRouter.
        Requires OPENROUTER_API_KEY set in the environment.
        """
        super().__init__(**kwargs)

    def build_messages(self, system_prompt, user_prompt, image_url=None, history=None):
        user_content = [{"type": "text", "text": user_prompt}]
        if image_url is not None:
            user_content.append({"type": "image_url", "image_url": {"url": image_url, "detail": "high"}})
        messages = [{"role": "system", "content": [{"type": "text", "text": system_prompt}]}]
        messages.extend(history or [])
        messages.append({"role": "user", "content": user_content})
        return messages

    async def generate(self, messages, max_new_tokens=4096, temperature=None, model=None, **kwargs):
        """
        One chat completion. Retries are the caller's business; a timeout
        surfaces as ``asyncio.TimeoutError`` and provider errors propagate.
        """
        start_time = time.time()
        if self.request_interval > 0 and start_time < self.next_avil_time:
            await asyncio.sleep(self.next_avil_time - start_time)
        self.next_avil_time = time.time() + self.request_interval

        current_model = model if model else self.model
        try:
            response = await asyncio.wait_for(
                litellm.acompletion(
                    model=current_model,
                    messages=messages,
                    max_tokens=max_new_tokens if max_new_tokens else 4096,
                    temperature=temperature if temperature is not None else self.temperature,
                    stop=self.stop,
                    api_key=os.getenv("OPENROUTER_API_KEY"),
                    **kwargs,
                ),
                timeout=self.request_timeout_s,
            )
        except asyncio.TimeoutError:
            logger.warning(f"Timeout waiting for LLM response after {time.time() - start_time:.2f}s (model={current_model})")
            raise
        finally:
            elapsed = time.time() - start_time
            if elapsed > 60:
                logger.warning(f"Slow LLM response: {elapsed:.2f}s (model={current_model})")
            else:
                logger.debug(f"LLM response time: {elapsed:.2f}s (model={current_model})")
        return response.choices[0].message.content or ""
