import argparse
import asyncio
import json
import logging

from web_ref_agent.agent.browser import BrowserSession
from web_ref_agent.config import settings
from web_ref_agent.models import ActionKind, ActionRequest


async def run(args: argparse.Namespace) -> None:
    async with BrowserSession(user_data_dir=args.profile) as browser:
        await browser.goto(args.url)
        session = browser.automation_session()

        tree = await session.get_accessibility_tree()
        print(tree.tree)

        if args.marks:
            drawn = await session.draw_set_of_marks()
            print(f"Drew {drawn} marks")
            if args.screenshot:
                await browser.screenshot(args.screenshot)
                print(f"Saved screenshot to {args.screenshot}")
            await session.clear_set_of_marks()

        if args.find:
            located = await session.find_and_highlight(args.find)
            print(json.dumps(located.to_dict()))

        if args.action:
            result = await session.web_agent_action(
                ActionRequest(kind=ActionKind(args.action), handle=args.ref, value=args.value)
            )
            print(json.dumps(result.to_dict()))
            await browser.page.wait_for_timeout(settings.settle_ms)
            print((await session.get_accessibility_tree()).tree)


def main():
    parser = argparse.ArgumentParser(description="Print a ref-annotated snapshot of a page and drive it by ref")
    parser.add_argument("--url", default=settings.start_url, required=settings.start_url is None)
    parser.add_argument("--profile", default=None, help="Browser profile directory")
    parser.add_argument("--marks", action="store_true", help="Draw Set-of-Marks overlays")
    parser.add_argument("--screenshot", default=None, help="Save a screenshot while marks are drawn")
    parser.add_argument("--action", choices=[kind.value for kind in ActionKind])
    parser.add_argument("--ref", default=None, help="Element ref from the snapshot, e.g. e3")
    parser.add_argument("--value", default=None, help="Text, option, key or scroll direction")
    parser.add_argument("--find", default=None, help="Text snippet to locate and highlight")
    args = parser.parse_args()

    logging.basicConfig(level=settings.log_level.upper(), format="%(asctime)s %(levelname)s %(message)s")
    asyncio.run(run(args))


if __name__ == "__main__":
    main()
