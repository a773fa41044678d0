"""
Drive a conversion job through the tracker and print every progress notification.

Without arguments a simulated conversion is run; with --pdf the PDF is rendered
to images with PyMuPDF.
"""
import argparse
import logging
from dotenv import load_dotenv

from logging_config import configure_logging
from conversion_tracker.core.config import get_settings
from conversion_tracker.core.tracker import build_tracker
from conversion_tracker.services.converter import PDF_TO_IMAGE, convert_pdf_to_images
from conversion_tracker.services.simulator import simulate_conversion

load_dotenv()
configure_logging(get_settings().log_level)
logger = logging.getLogger(__name__)


def main():
    parser = argparse.ArgumentParser(description="Run a conversion job and watch its progress")
    parser.add_argument("--owner", default="demo-user", help="Owner id of the job")
    parser.add_argument("--kind", default="PDF_TO_WORD", help="Conversion kind for the simulation")
    parser.add_argument("--pdf", help="Render this PDF to images instead of simulating")
    parser.add_argument("--duration", type=float, default=None, help="Simulation duration in seconds")
    args = parser.parse_args()

    settings = get_settings()
    tracker = build_tracker(settings)
    try:
        if args.pdf:
            job = tracker.create(args.owner, args.pdf, PDF_TO_IMAGE)
        else:
            job = tracker.create(args.owner, f"{args.kind.lower()}.pdf", args.kind)

        def on_progress(snapshot):
            logger.info(
                f"[{snapshot.status.value}] {snapshot.progress_percent:3d}% "
                f"step {snapshot.current_step_index}/{snapshot.total_steps}: {snapshot.current_step_label}"
            )

        subscription = tracker.subscribe(job.id, on_progress)

        if args.pdf:
            final = convert_pdf_to_images(
                tracker,
                job.id,
                args.pdf,
                settings.get_output_dirpath(job.id),
                dpi=settings.image_dpi,
                format=settings.image_format,
            )
        else:
            duration = args.duration if args.duration is not None else settings.simulation_duration_seconds
            final = simulate_conversion(tracker, job.id, duration)

        if subscription is not None:
            subscription.unsubscribe()

        if final is None:
            logger.error("Job disappeared before it finished")
            return
        if final.error_message:
            logger.error(f"Conversion failed: {final.error_message}")
        elif final.result is not None:
            logger.info(f"Result: {final.result.model_dump(exclude_none=True)}")
        logger.info(f"Stats: {tracker.aggregate_stats(args.owner).model_dump()}")
    finally:
        tracker.shutdown()


if __name__ == "__main__":
    main()
