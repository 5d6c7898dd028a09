from math import ceil
from typing import List, Union

ELLIPSIS = 'ellipsis'
MAX_PAGES_TO_SHOW = 5
RESULTS_PER_PAGE = 10


def total_pages(total_results: int, per_page: int = RESULTS_PER_PAGE) -> int:
    if total_results <= 0:
        return 0
    return ceil(total_results / per_page)


def page_window(
    total: int,
    current: int,
    max_pages: int = MAX_PAGES_TO_SHOW
) -> List[Union[int, str]]:
    """
    Page numbers to offer around the current page.

    Short result sets list every page. Longer ones always show the first
    and last page, three pages around the current one (pushed inwards
    near either end) and an ellipsis marker for every gap.

    :param total: Total number of pages.
    :param current: The page being shown.
    :param max_pages: Up to this many pages are listed without gaps.
    :return: Page numbers and ELLIPSIS markers, in display order.
    """
    if total <= max_pages:
        return list(range(1, total + 1))

    start = max(current - 1, 2)
    end = min(current + 1, total - 1)
    if current <= 3:
        end = 4
    if current >= total - 2:
        start = total - 3

    pages: List[Union[int, str]] = [1]
    if start > 2:
        pages.append(ELLIPSIS)
    pages.extend(range(start, end + 1))
    if end < total - 1:
        pages.append(ELLIPSIS)
    pages.append(total)
    return pages
