import pytest

from regions import InvalidTransition, Region, RegionStatus


def test_create_is_idle_and_clamped():
    r = Region.create(-5, 90, 20, 20, image_width=100, image_height=100)
    assert r.status is RegionStatus.IDLE
    assert r.rect == (0, 90, 15, 10)
    assert r.cleaned_image is None and r.patch is None


def test_create_rejects_region_outside_image():
    with pytest.raises(ValueError):
        Region.create(150, 10, 20, 20, image_width=100, image_height=100)


def test_ids_are_unique():
    a = Region.create(0, 0, 10, 10, 100, 100)
    b = Region.create(0, 0, 10, 10, 100, 100)
    assert a.id != b.id


def test_cleaning_lifecycle(make_image):
    r = Region.create(10, 10, 20, 30, 100, 100)
    r.start_cleaning()
    assert r.status is RegionStatus.CLEANING
    r.mark_cleaned("data:image/png;base64,xx", make_image(20, 30))
    assert r.status is RegionStatus.CLEANED
    assert r.cleaned_image.startswith("data:image/png")
    assert r.to_dict()["has_patch"] is True


def test_error_can_be_retried(make_image):
    r = Region.create(10, 10, 20, 30, 100, 100)
    r.start_cleaning()
    r.mark_error("No image returned from Gemini")
    assert r.status is RegionStatus.ERROR
    assert r.patch is None and r.is_pending
    r.start_cleaning()
    assert r.error is None
    r.mark_cleaned("data:image/png;base64,xx", make_image(20, 30))
    assert not r.is_pending


@pytest.mark.parametrize("status,action", [
    (RegionStatus.IDLE, "mark_error"),
    (RegionStatus.CLEANED, "start_cleaning"),
    (RegionStatus.CLEANING, "start_cleaning"),
])
def test_invalid_transitions(status, action):
    r = Region.create(0, 0, 10, 10, 100, 100)
    r.status = status
    with pytest.raises(InvalidTransition):
        getattr(r, action)()


def test_patch_must_match_region_size(make_image):
    r = Region.create(0, 0, 10, 10, 100, 100)
    r.start_cleaning()
    with pytest.raises(ValueError):
        r.mark_cleaned("data:image/png;base64,xx", make_image(11, 10))
    assert r.status is RegionStatus.CLEANING


def test_to_dict():
    r = Region.create(1.5, 2.5, 10, 20, 100, 100)
    d = r.to_dict()
    assert d == {"id": r.id, "x": 1.5, "y": 2.5, "width": 10, "height": 20,
                 "status": "idle", "has_patch": False, "error": None}
