TARGET_PACKAGE = "sinet.startup.inDriver"

# Any of these phrases on screen means the trip detail screen is showing.
DETAIL_SCREEN_KEY_PHRASES = ("Ofrece tu tarifa", "Aceptar por COL$")

DETAIL_ORIGIN_RESOURCE_ID = f"{TARGET_PACKAGE}:id/info_textview_pickup"
DETAIL_DESTINATION_RESOURCE_ID = f"{TARGET_PACKAGE}:id/info_textview_destination"

ACCEPT_BUTTON_PHRASES = ("Aceptar por",)
CANCEL_BUTTON_PHRASE = "cancelar"
SUBMIT_OFFER_LABEL = "Oferta"
CLOSE_DIALOG_DESCRIPTION = "Cerrar"

CURRENCY_PREFIXES = ("COL$", "COP", "$")

# Widget classes, compared against the last segment of the node class name.
BUTTON_WIDGET = "Button"
IMAGE_WIDGETS = ("ImageView", "ImageButton")
EDIT_TEXT_WIDGET = "EditText"
TEXT_VIEW_WIDGET = "TextView"
CONTAINER_WIDGET = "ViewGroup"
HORIZONTAL_SCROLL_WIDGETS = ("HorizontalScrollView",)

MAX_CLICK_CLIMB_DEPTH = 7

SHORT_TRIP_THRESHOLD_KM = 5.0
COUNTER_OFFER_ROUNDING = 500
