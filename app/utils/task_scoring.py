# app/utils/task_scoring.py
# QC 審核分數計算

from app.models.task import PerformanceRatingEnum

# 計時分數 (滿分 100 中的比例)
TIMER_SCORES = {
    PerformanceRatingEnum.excellent: 70,
    PerformanceRatingEnum.good: 60,
    PerformanceRatingEnum.average: 50,
    PerformanceRatingEnum.lazy: 40,
}


def timer_score_from_rating(rating: PerformanceRatingEnum) -> int:
    return TIMER_SCORES[rating]


def compute_qc_total(rating: PerformanceRatingEnum, *manual_scores: int) -> int:
    """
    總分 = 計時分數 + 六項手動評分 (各 0..5)，夾在 0..100
    """
    total = timer_score_from_rating(rating) + sum(manual_scores)
    return max(0, min(100, total))
