# -*- coding: utf-8 -*-
import os
import toml

DEFAULT_SECTIONS = ("basic", "agent", "model", "browser", "backend", "api_keys")


def load_agent_config(
    config_path=None,
    config=None,
    save_file_dir="replayact_agent_files",
    default_goal="",
    default_website="",
    save_screenshots=True,
    max_iterations=50,
    history_size=10,
    history_window=5,
    inter_action_delay=1.5,
    max_continuous_failures=10,
    decision_max_tries=3,
    decision_backoff_factor=2,
    replay_delay=2.0,
    bridge_timeout=30,
    session_turns=6,
    reasoning="llm",
    model="openrouter/qwen/qwen-2.5-vl-72b-instruct",
    temperature=0.0,
    rate_limit=-1,
    request_timeout_s=120,
    headless=False,
    args=[],
    browser_app="chrome",
    viewport={"width": 1280, "height": 720},
    user_agent="Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/142.0.0.0 Safari/537.36",
    backend_url="",
    auth_token="",
    backend_timeout=30.0,
    openrouter_api_key="",
):
    """
    Load and merge configuration from file, dict, or defaults.

    Values present in the file or dict win; every key they leave out is filled
    from the keyword defaults, section by section.
    """
    defaults = {
        "basic": {
            "save_file_dir": save_file_dir,
            "default_goal": default_goal,
            "default_website": default_website,
            "save_screenshots": save_screenshots,
        },
        "agent": {
            "max_iterations": max_iterations,
            "history_size": history_size,
            "history_window": history_window,
            "inter_action_delay": inter_action_delay,
            "max_continuous_failures": max_continuous_failures,
            "decision_max_tries": decision_max_tries,
            "decision_backoff_factor": decision_backoff_factor,
            "replay_delay": replay_delay,
            "bridge_timeout": bridge_timeout,
            "session_turns": session_turns,
            "reasoning": reasoning,
        },
        "model": {
            "name": model,
            "temperature": temperature,
            "rate_limit": rate_limit,
            "request_timeout_s": request_timeout_s,
        },
        "browser": {
            "headless": headless,
            "args": args,
            "browser_app": browser_app,
            "viewport": viewport,
            "user_agent": user_agent,
        },
        "backend": {
            "url": backend_url,
            "auth_token": auth_token or os.getenv("REPLAYACT_AUTH_TOKEN", ""),
            "timeout": backend_timeout,
        },
        "api_keys": {
            "openrouter_api_key": openrouter_api_key,
        },
    }

    try:
        if config is not None:
            # If config dictionary is passed directly, use it
            pass
        elif config_path is not None:
            with open(config_path, 'r') as config_file:
                print(f"Configuration File Loaded - {config_path}")
                config = toml.load(config_file)
        else:
            config = {}
    except FileNotFoundError:
        print(f"Error: File '{os.path.abspath(config_path)}' not found.")
        return None
    except toml.TomlDecodeError:
        print(f"Error: File '{os.path.abspath(config_path)}' is not a valid TOML file.")
        return None

    merged = {}
    for section in DEFAULT_SECTIONS:
        merged[section] = {**defaults[section], **(config.get(section) or {})}
    for section, values in config.items():
        if section not in merged:
            merged[section] = values
    return merged
