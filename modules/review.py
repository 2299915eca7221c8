import logging
import streamlit as st
from pydantic import ValidationError
from config import api
from api_client import ApiError, unwrap_list
from models.review_model import Review, ReviewRequest
from utils import sanitize_input, format_date, show_retry_screen

logger = logging.getLogger(__name__)

REVIEW_FILTERS = ["all", "pending", "approved"]


def _parse_reviews(items):
    reviews = []
    for item in items:
        try:
            reviews.append(Review.model_validate(item))
        except ValidationError as e:
            logger.warning(f"Skipping malformed review record: {e}")
    return reviews


def average_rating(reviews):
    if not reviews:
        return None
    return round(sum(r.rating for r in reviews) / len(reviews), 1)


def stars(rating):
    rating = max(0, min(5, int(rating or 0)))
    return "★" * rating + "☆" * (5 - rating)


def filter_reviews(reviews, key):
    if key == "approved":
        return [r for r in reviews if r.is_approved]
    if key == "pending":
        return [r for r in reviews if not r.is_approved]
    return list(reviews)


def fetch_vehicle_reviews(vehicle_id):
    """Approved reviews for a vehicle; records without the flag count as approved."""
    items = unwrap_list(api.get(f"/reviews/vehicle/{vehicle_id}"), "reviews")
    return _parse_reviews([i for i in items if isinstance(i, dict) and i.get("is_approved", True)])


def fetch_my_reviews():
    return _parse_reviews(unwrap_list(api.get("/reviews/my-reviews"), "reviews"))


def submit_review(request):
    logger.info(f"Submitting review for booking {request.booking_id}")
    return api.post("/reviews", json=request.model_dump())


def fetch_all_reviews():
    return _parse_reviews(unwrap_list(api.get("/reviews/admin/all"), "reviews"))


def approve_review(review_id):
    logger.info(f"Approving review {review_id}")
    return api.patch(f"/reviews/admin/approve/{review_id}")


def reject_review(review_id, admin_notes=""):
    logger.info(f"Rejecting review {review_id}")
    return api.patch(f"/reviews/admin/reject/{review_id}", json={"admin_notes": admin_notes})


def delete_review(review_id):
    logger.info(f"Deleting review {review_id}")
    return api.delete(f"/reviews/admin/{review_id}")


def render_review_list(reviews):
    if not reviews:
        st.caption("No reviews yet.")
        return
    st.write(f"{stars(round(average_rating(reviews)))} {average_rating(reviews)} / 5 from {len(reviews)} review(s)")
    for review in reviews:
        with st.container(border=True):
            st.markdown(f"**{review.author}** · {stars(review.rating)}")
            if review.comment:
                st.write(review.comment)
            st.caption(format_date(review.created_at))


def review_form(booking):
    with st.form(key=f"review_form_{booking.booking_id}"):
        rating = st.slider("Rating", 1, 5, 5)
        comment = sanitize_input(st.text_area("Comment"))
        submit = st.form_submit_button("Submit review")

    if submit:
        try:
            request = ReviewRequest(booking_id=booking.booking_id, vehicle_id=booking.vehicle_id,
                                    rating=rating, comment=comment.strip())
        except ValidationError as e:
            st.error(f"Invalid review: {e.errors()[0]['msg']}")
            return
        try:
            submit_review(request)
        except ApiError as e:
            st.error(f"Could not submit review: {e.message}")
            return
        st.session_state["booking_panel"] = None
        st.toast("Thanks! Your review will appear once approved.")
        st.rerun()


def my_reviews():
    st.subheader("My Reviews")
    try:
        reviews = fetch_my_reviews()
    except ApiError as e:
        logger.error(f"Error loading own reviews: {e}")
        show_retry_screen("We couldn't load your reviews. Please try again.", "my_reviews")
        return
    if not reviews:
        st.write("You haven't reviewed any rentals yet.")
    for review in reviews:
        state = "Published" if review.is_approved else "Awaiting approval"
        st.write(f"{stars(review.rating)} **{review.vehicle_name or 'Vehicle #' + str(review.vehicle_id)}** · {state}")
        if review.comment:
            st.caption(review.comment)


def moderate_reviews():
    st.subheader("Review Moderation")
    try:
        reviews = fetch_all_reviews()
    except ApiError as e:
        logger.error(f"Error loading reviews for moderation: {e}")
        show_retry_screen("We couldn't load reviews. Please try again.", "admin_reviews")
        return

    key = st.radio("Show", REVIEW_FILTERS, horizontal=True, format_func=str.capitalize)
    selected = filter_reviews(reviews, key)
    if not selected:
        st.write("No reviews here.")
        return

    for review in selected:
        with st.container(border=True):
            st.markdown(f"**{review.author}** on {review.vehicle_name or 'vehicle #' + str(review.vehicle_id)} · {stars(review.rating)}")
            st.write(review.comment or "(no comment)")
            st.caption(f"{format_date(review.created_at)} · {'approved' if review.is_approved else 'pending'}")
            notes = st.text_input("Admin notes", value=review.admin_notes or "", key=f"review_notes_{review.review_id}")
            col1, col2, col3 = st.columns(3)
            try:
                if not review.is_approved and col1.button("Approve", key=f"approve_review_{review.review_id}"):
                    approve_review(review.review_id)
                    st.toast("Review approved.")
                    st.rerun()
                if col2.button("Reject", key=f"reject_review_{review.review_id}"):
                    reject_review(review.review_id, notes)
                    st.toast("Review rejected.")
                    st.rerun()
                if col3.button("Delete", key=f"delete_review_{review.review_id}"):
                    delete_review(review.review_id)
                    st.toast("Review deleted.")
                    st.rerun()
            except ApiError as e:
                st.error(f"Moderation failed: {e.message}")
