from rmstore.page import INVALID_PAGE_ID, PAGE_SIZE, Page, PageId


def test_page_id_default_page_no_is_invalid():
    assert PageId(3).page_no == INVALID_PAGE_ID


def test_page_id_equality_and_hash():
    table = {PageId(1, 2): "a"}
    assert table[PageId(1, 2)] == "a"
    assert PageId(1, 2) == PageId(1, 2)
    assert PageId(1, 2) not in {PageId(2, 1): "b"}


def test_page_id_string_form():
    assert str(PageId(3, 7)) == "{fd: 3 page_no: 7}"


def test_page_id_ordering_is_by_fd_then_page():
    ids = [PageId(2, 0), PageId(1, 5), PageId(1, 1)]
    assert sorted(ids) == [PageId(1, 1), PageId(1, 5), PageId(2, 0)]


def test_new_page_is_zeroed_and_clean():
    page = Page()
    assert len(page.data) == PAGE_SIZE
    assert not any(page.data)
    assert page.is_dirty is False
    assert page.pin_count == 0


def test_reset_memory_clears_data():
    page = Page()
    page.data[10:15] = b"hello"
    page.reset_memory()
    assert page.data == bytearray(PAGE_SIZE)


def test_page_lsn_round_trip_at_start_of_page():
    page = Page()
    page.page_lsn = 1234
    assert page.page_lsn == 1234
    assert any(page.data[: Page.OFFSET_PAGE_HDR])
    assert not any(page.data[Page.OFFSET_PAGE_HDR:])


def test_page_lsn_negative_value():
    page = Page()
    page.page_lsn = -1
    assert page.page_lsn == -1