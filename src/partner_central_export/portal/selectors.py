from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class PortalSelectors:
    """
    Partner Central is a third-party UI; selectors change over time.
    Keep all UI selectors/text hooks here for easy maintenance.
    """

    # Login
    email_input: str = "#emailControl"
    email_continue_button: str = "#continueButton"
    password_input: str = "#passwordControl"
    sign_in_button: str = "#signInButton"
    passcode_input: str = 'input[name="passcode-input"]'
    passcode_submit_button: str = 'button[data-testid="passcode-submit-button"]'

    # Property list (post-login landing page)
    property_table: str = ".fds-data-table-wrapper"
    property_search_input: str = ".all-properties__search input.fds-field-input"
    property_result_rows: str = "tbody tr"
    property_link: str = '.property-cell__property-name a[href*="/lodging/home/home"]'

    # Side navigation drawer
    nav_drawer: str = ".uitk-drawer-content"
    nav_item: str = ".uitk-action-list-item-content"
    nav_item_text: str = ".uitk-text.overflow-wrap"
    nav_item_link: str = "a.uitk-action-list-item-link"
    nav_reservations_text: str = "Reservations"

    # Reservation filters (each option is a switch wrapping an input + a label)
    date_type_option: str = '.fds-switch:has(input[type="radio"][name="dateTypeFilter"])'
    date_type_input: str = 'input[type="radio"][name="dateTypeFilter"]'
    payment_filter_option: str = '.fds-switch:has(input[type="checkbox"][name="paymentTypeFilter"])'
    payment_filter_input: str = 'input[type="checkbox"][name="paymentTypeFilter"]'
    filter_label: str = ".fds-switch-label"

    # Date picker
    from_input: str = ".from-input-label input.fds-field-input"
    to_input: str = ".to-input-label input.fds-field-input"
    first_month_header: str = ".first-month h2"
    second_month_header: str = ".second-month h2"
    first_month_days: str = ".first-month .fds-datepicker-day"
    second_month_days: str = ".second-month .fds-datepicker-day"
    calendar_nav_buttons: str = ".fds-datepicker-navigation button"
    calendar_done_button: str = ".fds-dropdown-footer button"

    # Results table
    apply_button: str = ".fds-cell.all-cell-1-4 button.fds-button2.primary"
    table_loader: str = "td .fds-loader.is-loading.is-visible"
    results_table: str = "table.fds-data-table"
    result_rows: str = "table.fds-data-table tbody tr"
    guest_links: str = "td.guestName button.guestNameLink"
    page_size_select: str = ".fds-pagination-selector select"
    next_page_button: str = ".fds-pagination-button.next button"
    results_summary: str = ".fds-pagination-showing-result"

    # Row cells (relative to a result row)
    row_guest_name: str = "td.guestName button.guestNameLink span.fds-button2-label"
    row_guest_button: str = "td.guestName button.guestNameLink"
    row_reservation_id: str = "td.reservationId div.fds-cell"
    row_confirmation_code: str = "td.confirmationCode label.confirmationCodeLabel"
    row_check_in: str = "td.checkInDate"
    row_check_out: str = "td.checkOutDate"
    row_room_type: str = "td.roomType"
    row_booking_amount: str = "td.bookingAmount .fds-currency-value"
    row_booked_date: str = "td.bookedOnDate"

    # Reservation detail dialog
    dialog_content: str = ".fds-dialog-content"
    dialog_close_button: str = ".fds-dialog-header button.dialog-close"
    card_number: str = ".cardNumber.replay-conceal bdi"
    # Expiry is the first match, CVV the second.
    card_detail_cells: str = ".cardDetails .fds-cell.all-cell-1-4.fds-type-color-primary.replay-conceal"
