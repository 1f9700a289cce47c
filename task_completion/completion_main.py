"""Main entry point for task completion detection."""
import json
import logging
import sys
from pathlib import Path

from .classifier import build_classifier
from .completion_config import CompletionConfig
from .completion_workflow import CompletionDetector
from .embeddings import build_embedding_provider
from .merger import apply_completion_targets
from .models import CompletionSuggestion
from .stores import InMemorySessionStore, InMemoryTaskStore

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(message)s",
    datefmt="%H:%M:%S",
    stream=sys.stderr,
)
logger = logging.getLogger(__name__)

USAGE = "Usage: task-completion <detect|apply|benchmark> <input.json> [output.json]"


def load_snapshot(input_file: str) -> dict:
    """
    Load a detection snapshot from a JSON file.

    The snapshot carries the request (userId, transcript, summary, attendees, ...)
    and the store contents (tasks, meetings, chatSessions).

    Args:
        input_file: Path to input JSON file

    Returns:
        Snapshot dictionary
    """
    logger.info("Reading snapshot from: %s", input_file)
    with open(input_file, 'r', encoding='utf-8') as f:
        data = json.load(f)
    if not isinstance(data, dict):
        raise ValueError("Snapshot must be a JSON object")
    if "userId" not in data:
        raise ValueError("Snapshot must contain 'userId' field")
    return data


def build_stores(snapshot: dict) -> tuple[InMemoryTaskStore, InMemorySessionStore, InMemorySessionStore]:
    return (
        InMemoryTaskStore(snapshot.get("tasks", [])),
        InMemorySessionStore("meeting", snapshot.get("meetings", [])),
        InMemorySessionStore("chat", snapshot.get("chatSessions", [])),
    )


def write_output(output_file: str, payload: dict):
    logger.info("Writing output to: %s", output_file)
    with open(output_file, 'w', encoding='utf-8') as f:
        json.dump(payload, f, indent=2, ensure_ascii=False, default=str)


def run_detect(snapshot: dict) -> dict:
    task_store, meeting_store, chat_store = build_stores(snapshot)
    detector = CompletionDetector(
        task_store,
        meeting_store,
        chat_store,
        embedding_provider=build_embedding_provider(),
        classifier=build_classifier(),
        config=CompletionConfig.from_env(),
    )
    result = detector.detect(
        snapshot["userId"],
        snapshot.get("transcript", ""),
        summary=snapshot.get("summary"),
        attendees=snapshot.get("attendees", []),
        exclude_meeting_id=snapshot.get("excludeMeetingId"),
        require_attendee_match=bool(snapshot.get("requireAttendeeMatch", False)),
        min_match_ratio=snapshot.get("minMatchRatio"),
        workspace_id=snapshot.get("workspaceId"),
    )
    logger.info("Done. Detected %d completion(s).", len(result.suggestions))
    return {
        "suggestions": [suggestion.to_document() for suggestion in result.suggestions],
        "diagnostics": result.diagnostics.model_dump(),
    }


def run_apply(snapshot: dict) -> dict:
    task_store, meeting_store, chat_store = build_stores(snapshot)
    suggestions = [CompletionSuggestion.model_validate(item) for item in snapshot.get("suggestions", [])]
    result = apply_completion_targets(suggestions, snapshot["userId"], task_store, meeting_store, chat_store)
    logger.info("Done. Applied %d target(s).", result.targets)
    return {
        **snapshot,
        "suggestions": [],
        "tasks": task_store.documents,
        "meetings": meeting_store.documents,
        "chatSessions": chat_store.documents,
    }


def main(argv: list[str] | None = None):
    """CLI entry point for completion detection."""
    args = list(sys.argv[1:] if argv is None else argv)
    if len(args) < 2 or args[0] not in ("detect", "apply", "benchmark"):
        print(USAGE, file=sys.stderr)
        sys.exit(1)

    command, input_file = args[0], args[1]
    if command == "benchmark":
        from .benchmark import main as benchmark_main
        sys.exit(benchmark_main(input_file))

    default_output = "completions.json" if command == "detect" else str(Path(input_file).with_suffix(".applied.json"))
    output_file = args[2] if len(args) > 2 else default_output

    try:
        snapshot = load_snapshot(input_file)
        payload = run_detect(snapshot) if command == "detect" else run_apply(snapshot)
        write_output(output_file, payload)
        logger.info("Results saved to %s", output_file)
    except FileNotFoundError:
        logger.error("Input file not found: %s", input_file)
        sys.exit(1)
    except json.JSONDecodeError as e:
        logger.error("Invalid JSON in input file: %s", e)
        sys.exit(1)
    except ValueError as e:
        logger.error("Invalid input format: %s", e)
        sys.exit(1)
    except Exception as e:
        logger.error("Error: %s", e, exc_info=True)
        sys.exit(1)


if __name__ == "__main__":
    main()
