import threading, queue, time
from .analysis import daily_cap_reached, mark_failed, run_for_image
from .storage import load_image_bytes
from ..errors import GalleryError
from ..models.database import SessionLocal
from ..models.imageModel import Image
from ..utils.logging import logger

_JOB_QUEUE = queue.Queue()
_WORKER_STARTED = False


def process_job(config, image_id, image_url):
    with SessionLocal() as db:
        img = db.query(Image).filter(Image.id == image_id).first()
        if not img:
            logger.warning(f"Job skipped, image {image_id} no longer exists")
            return
        if daily_cap_reached(db, img.user_id, config, exclude_image_id=img.id):
            logger.warning(f"Job skipped, daily analysis limit reached for user {img.user_id}")
            mark_failed(db, img.id, img.user_id)
            return
        logger.info(f"Processing image {image_id}")
        try:
            run_for_image(db, img, lambda: load_image_bytes(img, image_url, config), config)
            logger.info(f"Job success {image_id}")
        except GalleryError as e:
            logger.warning(f"Job failed {image_id}: {e.message}")


def start_worker(app):
    global _WORKER_STARTED
    if _WORKER_STARTED: return
    _WORKER_STARTED = True
    config = app.config

    def loop():
        logger.info("Analysis worker started")
        while True:
            try:
                job = _JOB_QUEUE.get()
                if job is None: break
                try:
                    process_job(config, job["image_id"], job["image_url"])
                finally:
                    _JOB_QUEUE.task_done()
            except Exception as e:
                logger.exception(f"Worker loop error: {e}")
                time.sleep(1)

    threading.Thread(target=loop, daemon=True, name="AnalysisWorker").start()


def enqueue_analysis(image_id, image_url):
    _JOB_QUEUE.put({"image_id": image_id, "image_url": image_url})
