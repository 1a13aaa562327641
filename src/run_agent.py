#!/usr/bin/env python3
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
"""
Command line entry point for replayact.

    learn         run the reasoning agent on a goal and record a workflow
    replay        replay a recorded workflow for one listing
    replay-batch  replay a recorded workflow for every listing in a JSON file

Configuration is loaded from a TOML file (see ``load_agent_config``).
"""

import argparse
import asyncio
import datetime
import json
import logging
import os
import sys
import uuid

from dotenv import load_dotenv

from replayact.agent.agent import BrowserAgent
from replayact.agent.config import load_agent_config
from replayact.agent.trace import Trace


def setup_logging(log_dir="logs"):
    """Console output for module loggers plus one run log file under ``log_dir``."""
    os.makedirs(log_dir, exist_ok=True)
    timestamp = datetime.datetime.now().strftime("%Y%m%d_%H%M%S")

    root_logger = logging.getLogger()
    root_logger.setLevel(logging.INFO)
    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setFormatter(logging.Formatter('%(asctime)s - %(name)s - %(levelname)s - %(message)s'))
    root_logger.addHandler(console_handler)

    run_logger = logging.getLogger('run_agent')
    run_handler = logging.FileHandler(os.path.join(log_dir, f"replayact_run_{timestamp}.log"), mode='w', encoding='utf-8')
    run_handler.setFormatter(logging.Formatter('%(asctime)s - %(name)s - %(levelname)s - %(message)s'))
    run_logger.addHandler(run_handler)
    run_logger.setLevel(logging.INFO)
    return run_logger


def load_listings(path):
    with open(path, 'r', encoding='utf-8') as f:
        data = json.load(f)
    if isinstance(data, dict):
        data = data.get("listings", [data])
    return data


async def load_trace(agent, args):
    if args.trace_file:
        return Trace.load(args.trace_file)
    return await agent.store.load(args.workflow_id)


async def run_learn(agent, args, run_logger):
    goal = args.goal or agent.config['basic']['default_goal']
    website = args.website or agent.config['basic']['default_website']
    run_logger.info(f"Learning: {goal} on {website}")
    await agent.start(website=website)
    try:
        result = await agent.learn(goal, website=website)
    finally:
        await agent.shutdown()
    extra = {"goal": goal, "website": website}
    if agent.last_trace is not None:
        extra["workflow_id"] = agent.last_trace.workflow_id
        extra["recorded_steps"] = len(agent.last_trace)
    agent.save(result, extra=extra)
    return [result]


async def run_replay(agent, args, run_logger):
    trace = await load_trace(agent, args)
    if args.command == "replay":
        listings = [load_listings(args.listing)[0]]
    else:
        listings = load_listings(args.listings)
    run_logger.info(f"Replaying workflow {trace.workflow_id} ({len(trace)} steps) for {len(listings)} listing(s)")
    await agent.start(website=args.website or trace.website)
    try:
        if len(listings) == 1:
            results = [await agent.replay(trace, listings[0])]
        else:
            results = await agent.replay_batch(trace, listings)
    finally:
        await agent.shutdown()
    agent.save(results[-1], extra={
        "workflow_id": trace.workflow_id,
        "batch": [r.to_dict() for r in results],
    })
    return results


def build_parser():
    parser = argparse.ArgumentParser(description="Learn browser workflows once, replay them per listing")
    parser.add_argument("-c", "--config_path", help="Path to the TOML configuration file.", type=str, metavar='config', default=None)
    parser.add_argument("--headless", action="store_true", help="Run the browser headless")
    sub = parser.add_subparsers(dest="command", required=True)

    learn = sub.add_parser("learn", help="Learn a workflow with the reasoning agent")
    learn.add_argument("goal", nargs="?", default=None)
    learn.add_argument("--website", default=None)

    for name, listing_arg in (("replay", "--listing"), ("replay-batch", "--listings")):
        replay = sub.add_parser(name, help=f"{name.replace('-', ' ').capitalize()} of a recorded workflow")
        source = replay.add_mutually_exclusive_group(required=True)
        source.add_argument("--workflow-id", dest="workflow_id")
        source.add_argument("--trace-file", dest="trace_file")
        replay.add_argument(listing_arg, required=True, help="JSON file with the listing data")
        replay.add_argument("--website", default=None)
    return parser


async def main(argv=None):
    args = build_parser().parse_args(argv)
    load_dotenv()
    run_logger = setup_logging()

    config = load_agent_config(config_path=args.config_path)
    if config is None:
        sys.exit(1)
    if args.headless:
        config['browser']['headless'] = True
    os.makedirs(config['basic']['save_file_dir'], exist_ok=True)

    run_id = f"{args.command}_{uuid.uuid4().hex[:8]}"
    agent = BrowserAgent(config=config, run_id=run_id)

    if args.command == "learn":
        results = await run_learn(agent, args, run_logger)
    else:
        results = await run_replay(agent, args, run_logger)

    for result in results:
        run_logger.info(f"{result.status.value}: {result.message}")
    return 0 if all(r.success for r in results) else 1


def cli():
    sys.exit(asyncio.run(main()))


if __name__ == "__main__":
    cli()
