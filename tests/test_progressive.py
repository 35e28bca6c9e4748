from imagegen.client.progressive import ProgressiveImage, project_progressive_image
from imagegen.jobs.models import Job, JobStatus


def make_job(**fields):
    return Job(job_id="job_1_abcdefghi", model_id="local-mock", **fields)


def test_no_job():
    assert project_progressive_image(None) == ProgressiveImage()


def test_pending_without_previews():
    view = project_progressive_image(make_job())
    assert view.current_image is None
    assert view.preview_images == []
    assert view.is_loading is True
    assert view.progress == 0


def test_processing_shows_newest_preview():
    view = project_progressive_image(make_job(
        status=JobStatus.PROCESSING, progress=70, eta=10,
        preview_urls=["/low.png", "/mid.png"],
    ))
    assert view.current_image == "/mid.png"
    assert view.preview_images == ["/low.png", "/mid.png"]
    assert view.is_loading is True
    assert view.progress == 70
    assert view.eta == 10


def test_completed_shows_final_image():
    view = project_progressive_image(make_job(
        status=JobStatus.COMPLETED, progress=100, eta=0,
        preview_urls=["/low.png"], final_url="/final.png",
    ))
    assert view.current_image == "/final.png"
    assert view.is_loading is False
    assert view.progress == 100
    assert view.eta is None


def test_failed_keeps_last_preview():
    view = project_progressive_image(make_job(
        status=JobStatus.FAILED, progress=40,
        preview_urls=["/low.png"], error="renderer exploded",
    ))
    assert view.current_image == "/low.png"
    assert view.is_loading is False
    assert view.error == "renderer exploded"


def test_cancelled_is_not_loading():
    view = project_progressive_image(make_job(status=JobStatus.CANCELLED, preview_urls=["/low.png"]))
    assert view.current_image == "/low.png"
    assert view.is_loading is False
    assert view.error is None


def test_projection_does_not_alias_job():
    job = make_job(status=JobStatus.PROCESSING, preview_urls=["/low.png"])
    first = project_progressive_image(job)
    first.preview_images.append("/other.png")

    assert job.preview_urls == ["/low.png"]
    assert project_progressive_image(job) == ProgressiveImage(
        current_image="/low.png", preview_images=["/low.png"], is_loading=True,
    )
