"""
Console Test Harness for SessionService

Simple console loop to run a discovery session before adding Flask complexity.

Usage:
    python main.py            # real model (GPU)
    python main.py --stub     # scripted model, no GPU needed
"""

import argparse
import logging
import sys

from brand_discovery.commands import (
    FinalizeSession,
    RecordRapidFire,
    StartSession,
    SubmitMessage,
)
from brand_discovery.core.session_service import SessionService
from brand_discovery.persistence import SessionStore
from brand_discovery.results import IllegalCommand
from brand_discovery.utils.exercise_config import ExerciseConfig
from brand_discovery.utils.model_client_stub import StubModelClient
from brand_discovery.utils.system_prompt import build_system_prompt

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)

EXIT_COMMANDS = {"quit", "exit", "stop"}
RAPID_FIRE_PREFIX = "/rf "


def print_separator(char="=", length=60):
    """Print a separator line"""
    print(char * length)


def print_debug_info(turn_result):
    """Print debug information from TurnResult"""
    print("\n" + "-" * 60)
    print("DEBUG INFO:")
    print("-" * 60)

    debug = turn_result.debug

    print(f"Parse outcome: {debug.get('parse_outcome', 'N/A')}")

    metadata = debug.get('parse_metadata', {})
    if metadata.get('strategy'):
        print(f"Extraction strategy: {metadata['strategy']}")
    if metadata.get('normalization_applied'):
        print(f"Normalization applied: {metadata['normalization_applied']}")

    if 'requested_phase' in debug:
        print(
            f"Phase: {debug['phase_before']} -> {debug['phase_after']} "
            f"(requested {debug['requested_phase']})"
        )

    updates = turn_result.response.state_updates
    if updates.identified_values:
        print(f"Identified values: {list(updates.identified_values)}")
    if updates.new_insights:
        print(f"New insights: {list(updates.new_insights)}")

    if turn_result.error:
        print(f"ERROR: {turn_result.error}")

    print("-" * 60)


def build_service(use_stub, store_dir):
    """Wire model client, store and service"""
    exercise_config = ExerciseConfig()

    if use_stub:
        model_client = StubModelClient()
    else:
        from brand_discovery.utils.hf_client import HuggingFaceClient
        model_client = HuggingFaceClient(
            model_name="mistralai/Mistral-7B-Instruct-v0.2",
            load_in_4bit=True
        )

    return SessionService(
        store=SessionStore(store_dir),
        model_client=model_client,
        system_prompt=build_system_prompt(exercise_config.value_words),
        exercise_config=exercise_config
    )


def main(argv=None):
    """Run console session"""
    parser = argparse.ArgumentParser(description="Brand values discovery console harness")
    parser.add_argument('--stub', action='store_true', help="use the scripted model client")
    parser.add_argument('--company', default=None, help="founder's company name")
    parser.add_argument('--name', default=None, help="founder's name")
    parser.add_argument('--store-dir', default="outputs/sessions", help="session storage directory")
    args = parser.parse_args(argv)

    print_separator()
    print("BRAND VALUES DISCOVERY - CONSOLE SESSION")
    print_separator()
    print("\nInitializing modules (this may take 30 seconds)...")

    try:
        service = build_service(args.stub, args.store_dir)
        print("\nModules initialized successfully!")

    except Exception as e:
        print(f"\nFailed to initialize: {e}")
        import traceback
        traceback.print_exc()
        return 1

    print_separator()
    print("STARTING SESSION")
    print_separator()
    print("Type 'quit', 'exit', or 'stop' to end early")
    print("Type '/rf <word> <yes|no|maybe>' to record a rapid-fire answer\n")

    result = service.handle(StartSession(company_name=args.company, user_name=args.name))
    session_id = result.session_id
    print(f"\nMiyara: {result.response.spoken_response}\n")
    print(f"[Session {session_id}, Phase {result.current_phase.value}]")
    print_debug_info(result)

    while not result.session_complete:
        try:
            user_input = input("> ").strip()

            if not user_input:
                print("Please enter a response.\n")
                continue

            if user_input.lower() in EXIT_COMMANDS:
                print("\nSession ended by user")
                break

            if user_input.startswith(RAPID_FIRE_PREFIX):
                parts = user_input[len(RAPID_FIRE_PREFIX):].split()
                if len(parts) != 2:
                    print("Usage: /rf <word> <yes|no|maybe>\n")
                    continue
                recorded = service.handle(RecordRapidFire(session_id, parts[0], parts[1]))
                if isinstance(recorded, IllegalCommand):
                    print(f"Rejected: {recorded.reason}\n")
                else:
                    print(f"[Recorded {recorded.word}: {recorded.response} (#{recorded.rapid_fire_index})]\n")
                continue

            turn = service.handle(SubmitMessage(session_id=session_id, user_message=user_input))
            if isinstance(turn, IllegalCommand):
                print(f"Rejected: {turn.reason}\n")
                break

            result = turn
            print(f"\nMiyara: {result.response.spoken_response}\n")
            print(f"[Session {session_id}, Phase {result.current_phase.value}]")
            print_debug_info(result)

        except KeyboardInterrupt:
            print("\n\nSession interrupted by user (Ctrl+C)")
            break

    if result.session_complete:
        print_separator()
        print("SESSION COMPLETE")
        print_separator()

        report = service.handle(FinalizeSession(session_id=session_id))
        print(f"\nDeliverable generated:")
        print(f"  - Share URL: {report.share_url}")
        print(f"  - Values: {[v['value_name'] for v in report.content['values']]}")
        print()
        print(service.get_deliverable_markdown(report.share_slug))

    print_separator()
    print("Console session complete")
    print_separator()
    return 0


if __name__ == '__main__':
    sys.exit(main())
