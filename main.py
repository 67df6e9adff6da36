"""
Autoconfig — demo entry point

Creates the shared infrastructure (EventBus, Config), builds a
PreferenceEngine over a tiny embedding table, feeds it a few assistant
responses through the event bus and prints an augmented prompt.
"""

import logging
import sys

from PyQt6.QtCore import QCoreApplication

from autoconfig import Config, EventBus, PreferenceEngine
from autoconfig.events import CHAT_MESSAGE, PREFERENCES_UPDATED

DEMO_EMBEDDINGS = {
    "box": [0.8, 0.1, 0.2],
    "rectangle": [0.79, 0.12, 0.18],
    "tikz": [0.5, 0.5, 0.1],
}

DEMO_RESPONSES = (
    "Draw a red box using TikZ",
    "Make a rectangle diagram",
    "Add a green box",
)


def main() -> None:
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    app = QCoreApplication(sys.argv)

    # Shared infrastructure
    bus = EventBus()
    config = Config(bus, path=None)

    # Preference memory, fed by assistant chat messages
    engine = PreferenceEngine(DEMO_EMBEDDINGS, event_bus=bus, settings=config)
    bus.subscribe(
        PREFERENCES_UPDATED,
        lambda d: print(f"  memory: {d['stats']['total']} terms, promoted={d['promoted']}"),
    )

    for text in DEMO_RESPONSES:
        print(f"assistant: {text}")
        bus.publish(CHAT_MESSAGE, {"role": "assistant", "content": text})

    prompt = "Create a box diagram"
    for match in engine.get_relevant_preferences(prompt):
        print(f"  match: {match.key} sim={match.similarity:.3f} score={match.score:.3f}")
    print("Augmented Prompt:", engine.augment_prompt(prompt))

    app.quit()


if __name__ == "__main__":
    main()
