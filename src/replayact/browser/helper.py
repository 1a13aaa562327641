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
from playwright.async_api import Playwright, async_playwright
from pathlib import Path
import copy
import shutil
import toml
import os
import logging

from replayact.browser.bridge import install_content_script


async def normal_launch_async(playwright: Playwright, headless=False, args=None, channel=None):
    default_args = [
        "--disable-blink-features=AutomationControlled",
        "--disable-gpu",
        "--disable-dev-shm-usage",
        "--no-sandbox",
        "--disable-features=BackForwardCache,Translate",
    ]
    if args is None:
        args = default_args
    else:
        merged_extra = [a for a in default_args if a not in args]
        args = args + merged_extra

    browser = await playwright.chromium.launch(
        headless=headless,
        args=args,
        channel=channel,
    )
    return browser


async def normal_new_context_async(
        browser,
        storage_state=None,
        video_path=None,
        locale=None,
        user_agent: str = "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/142.0.0.0 Safari/537.36",
        viewport: dict = {"width": 1280, "height": 720},
):
    context = await browser.new_context(
        storage_state=storage_state,
        user_agent=user_agent,
        viewport=viewport,
        device_scale_factor=1,
        locale=locale,
        record_video_dir=video_path,
    )
    return context


def saveconfig(config, save_file):
    """
    config is a dictionary or the path of a toml file.
    save_file: saving path include file name.
    """
    if isinstance(save_file, str):
        save_file = Path(save_file)
    if isinstance(config, dict):
        # keys never land on disk
        config_without_key = copy.deepcopy(config)
        for name in list(config_without_key.get("api_keys", {})):
            config_without_key["api_keys"][name] = "Your API key here"
        if config_without_key.get("backend", {}).get("auth_token"):
            config_without_key["backend"]["auth_token"] = "Your token here"
        with open(save_file, 'w') as f:
            toml.dump(config_without_key, f)
    else:
        shutil.copyfile(str(config), str(save_file))


def setup_agent_logger(task_id, main_path, redirect_to_dev_log=False):
    logger = logging.getLogger(f"{task_id}")
    logger.setLevel(logging.INFO)

    logger.handlers.clear()

    os.makedirs(main_path, exist_ok=True)
    f_handler = logging.FileHandler(os.path.join(main_path, 'agent.log'), encoding='utf-8')
    f_handler.setLevel(logging.INFO)

    c_handler = logging.StreamHandler()
    c_handler.setLevel(logging.INFO)

    f_handler.setFormatter(logging.Formatter('%(asctime)s - %(message)s'))
    c_handler.setFormatter(logging.Formatter('%(message)s'))

    logger.addHandler(f_handler)
    if not redirect_to_dev_log:
        logger.addHandler(c_handler)

    logger.propagate = False
    return logger


async def page_on_open_handler(agent, page):
    await page.add_init_script("Object.defineProperty(navigator, 'webdriver', { get: () => undefined });")
    await install_content_script(page)
    page.on("close", agent.page_on_close_handler)
    agent.page = page


async def page_on_close_handler(agent, page):
    if getattr(agent, 'is_stopping', False) or page is not agent.page:
        return
    context = agent.session_control.get('context') if isinstance(agent.session_control, dict) else None
    remaining = [p for p in (context.pages if context else []) if not p.is_closed()]
    if remaining:
        agent.page = remaining[-1]
        agent.logger.info(f"The active tab was closed. Switched to: {agent.page.url}")
    else:
        agent.page = None
        agent.logger.warning("The active tab was closed and no other tab is open.")


async def start_agent_browser(agent, website=None, headless=None):
    browser_config = agent.config['browser']
    agent.playwright = await async_playwright().start()
    agent.session_control = {}
    agent.session_control['browser'] = await normal_launch_async(
        agent.playwright,
        headless=browser_config['headless'] if headless is None else headless,
        args=browser_config.get('args') or None,
        channel=browser_config.get('browser_app') or None,
    )
    agent.session_control['context'] = await normal_new_context_async(
        agent.session_control['browser'],
        viewport=browser_config['viewport'],
        user_agent=browser_config['user_agent'],
    )
    agent.session_control['context'].on("page", agent.page_on_open_handler)
    page = await agent.session_control['context'].new_page()
    await agent.page_on_open_handler(page)

    if website:
        await agent.page.goto(website, wait_until="load")
        agent.logger.info(f"Loaded website: {website}")
    else:
        agent.logger.info("Browser started without initial navigation.")


async def stop_agent_browser(agent):
    agent.is_stopping = True
    try:
        close_context = agent.session_control.get('context') if isinstance(agent.session_control, dict) else None
        if close_context:
            await close_context.close()
            agent.logger.info("Browser context closed.")
        if isinstance(agent.session_control, dict):
            browser = agent.session_control.get('browser')
            if browser:
                await browser.close()
            agent.session_control['context'] = None
            agent.session_control['browser'] = None
    except Exception as e:
        agent.logger.warning(f"Error closing browser: {e}")

    try:
        if getattr(agent, 'playwright', None):
            await agent.playwright.stop()
            agent.logger.info("Playwright instance stopped.")
            agent.playwright = None
    except Exception as e:
        agent.logger.warning(f"Error stopping playwright instance: {e}")
