import os
import logging
from typing import List, Optional
import fitz

from conversion_tracker.core.steps import get_steps
from conversion_tracker.core.tracker import ConversionTracker
from conversion_tracker.models.schemas import ConversionJob, JobStatus

# ロガーの設定
logger = logging.getLogger(__name__)

PDF_TO_IMAGE = "PDF_TO_IMAGE"

# 進捗の配分: 解析 0-10%, ページ描画 10-90%, 出力 90-100%
_ANALYZE_PROGRESS = 5
_RENDER_START = 10
_RENDER_SPAN = 80
_OUTPUT_PROGRESS = 95


def _is_cancelled(tracker: ConversionTracker, job_id: str) -> bool:
    current = tracker.get(job_id)
    return current is None or current.status == JobStatus.CANCELLED


def convert_pdf_to_images(
    tracker: ConversionTracker,
    job_id: str,
    pdf_path: str,
    output_dir: str,
    dpi: int = 150,
    format: str = "png",
) -> Optional[ConversionJob]:
    """
    PDFファイルをページごとの画像に変換し、進捗をトラッカーに報告する

    Args:
        tracker: 進捗を報告するトラッカー
        job_id: ジョブID
        pdf_path: PDFファイルのパス
        output_dir: 画像の出力ディレクトリ
        dpi: 出力画像のDPI
        format: 出力画像のフォーマット

    Returns:
        最終的なジョブの状態 (ジョブが存在しない場合は None)
    """
    if tracker.get(job_id) is None:
        logger.warning(f"Job {job_id} not found, skipping conversion of {pdf_path}")
        return None

    steps = get_steps(PDF_TO_IMAGE)

    if not os.path.exists(pdf_path):
        error_msg = f"PDF file not found: {pdf_path}"
        logger.error(error_msg)
        return tracker.fail(job_id, error_msg)

    image_paths: List[str] = []
    try:
        logger.info(f"Starting conversion of PDF: {pdf_path} with job_id: {job_id}")
        tracker.advance(job_id, _ANALYZE_PROGRESS, step_label=steps[1], step_index=1)
        os.makedirs(output_dir, exist_ok=True)

        with fitz.open(pdf_path) as pdf_document:
            total_pages = len(pdf_document)
            if total_pages == 0:
                return tracker.fail(job_id, f"PDF has no pages: {pdf_path}")
            logger.info(f"Opened PDF file: {pdf_path}, total pages: {total_pages}")

            matrix = fitz.Matrix(dpi / 72, dpi / 72)
            for page_num in range(total_pages):
                # キャンセルはページ単位で確認する
                if _is_cancelled(tracker, job_id):
                    logger.info(f"Conversion of job {job_id} cancelled after {page_num} page(s)")
                    return tracker.get(job_id)

                page = pdf_document[page_num]
                pix = page.get_pixmap(matrix=matrix)
                image_path = os.path.join(output_dir, f"{page_num + 1:07d}.{format}")
                pix.save(image_path)
                image_paths.append(image_path)
                logger.debug(f"Rendered page {page_num + 1}/{total_pages} to {image_path}")

                progress = _RENDER_START + (page_num + 1) / total_pages * _RENDER_SPAN
                tracker.advance(
                    job_id,
                    progress,
                    step_label=steps[2],
                    step_index=2,
                    extra_merge={"rendered_pages": page_num + 1, "total_pages": total_pages},
                )

        if _is_cancelled(tracker, job_id):
            return tracker.get(job_id)

        tracker.advance(job_id, _OUTPUT_PROGRESS, step_label=steps[4], step_index=4)
        output_size = sum(os.path.getsize(path) for path in image_paths)
        logger.info(f"PDF conversion completed for job {job_id}: {len(image_paths)} image(s), {output_size} bytes")
        return tracker.complete(job_id, {
            "output_url": output_dir,
            "output_size": output_size,
            "page_count": len(image_paths),
        })
    except Exception as e:
        error_msg = f"PDF変換中にエラーが発生しました: {str(e)}"
        logger.error(error_msg)
        return tracker.fail(job_id, error_msg)
