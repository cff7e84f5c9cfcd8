# /armelle/config/strings.py

# This file contains all user-facing strings, keyed by language, so the bot
# can be localized without touching workflow logic. Placeholders use the
# {{dotted.path}} syntax and are filled from the render parameters.

FALLBACK_LANGUAGE = "fr"

FR = {
    # Message frame
    "common.bot_header": "🤖 *Armelle* - Assistante fiscale",
    "common.subheader.step_progress": "Étape {{current}}/{{total}}",
    "common.subheader.validation_error": "Erreur de saisie",
    "common.subheader.error": "Incident",
    "common.footer.back_hint": "Tapez * pour revenir en arrière",
    "common.footer.retry": "Veuillez réessayer",
    "common.footer.workflow_complete": "Tapez *aide* pour voir ce que je peux faire",
    "common.footer.error_recovery": "Réessayez dans quelques instants",

    # Generic outcomes
    "common.service_unavailable": "⏳ Ce service est temporairement indisponible. Renvoyez votre message dans quelques instants.",
    "common.system_error": "😔 Désolée, une erreur inattendue est survenue. Notre équipe a été prévenue.",
    "common.version_conflict": "Votre message précédent est encore en cours de traitement. Merci de patienter puis de réessayer.",
    "common.workflow_complete": "✅ C'est terminé, merci !",
    "common.back_not_allowed": "Il n'est pas possible de revenir en arrière à cette étape.",
    "common.cancelled": "❌ Opération annulée.",
    "common.no_active_workflow": "Aucune démarche en cours.",
    "common.language_changed": "🇫🇷 La langue est maintenant le français.",
    "common.help_message": (
        "Commandes disponibles :\n"
        "• *retour* ou * : revenir à l'étape précédente\n"
        "• *annuler* : abandonner la démarche en cours\n"
        "• *fr* / *en* : changer de langue\n"
        "• *aide* : afficher ce message"
    ),

    # Validation reasons
    "validation.required": "Ce champ est obligatoire.",
    "validation.too_short": "Minimum {{min_length}} caractères requis.",
    "validation.too_long": "Maximum {{max_length}} caractères autorisés.",
    "validation.invalid_format": "Le format saisi est invalide.",
    "validation.out_of_range": "La valeur doit être comprise entre {{min}} et {{max}}.",
    "validation.invalid_choice": "Option invalide. Répondez avec le numéro d'une des options proposées.",

    # Onboarding workflow
    "workflows.onboarding.name": "Inscription",
    "workflows.onboarding.collect_name": "Bienvenue ! 👋 Pour commencer, quel est votre nom complet ?",
    "workflows.onboarding.searching_dgi": "🔎 Je recherche votre profil dans le fichier de la DGI, un instant...",
    "workflows.onboarding.confirm_single": "J'ai trouvé un contribuable correspondant à *{{collect_name}}*. Est-ce bien vous ?",
    "workflows.onboarding.select_multiple": "J'ai trouvé {{search_dgi.count}} contribuables correspondant à *{{collect_name}}*. Lequel êtes-vous ?",
    "workflows.onboarding.choice_not_me": "Ce n'est pas moi",
    "workflows.onboarding.choice_none": "Aucun de ces profils",
    "workflows.onboarding.too_many_results": "Votre recherche donne trop de résultats ({{search_dgi.count}}). Merci de préciser votre nom complet.",
    "workflows.onboarding.no_results": "Je n'ai trouvé aucun contribuable au nom de *{{collect_name}}*. Que souhaitez-vous faire ?",
    "workflows.onboarding.dgi_error": "Le service de la DGI ne répond pas pour le moment. Que souhaitez-vous faire ?",
    "workflows.onboarding.choice_retry_name": "Saisir à nouveau mon nom",
    "workflows.onboarding.choice_manual_niu": "Saisir mon NIU",
    "workflows.onboarding.choice_skip": "Continuer sans profil fiscal",
    "workflows.onboarding.enter_niu": "Saisissez votre Numéro d'Identifiant Unique (NIU), par exemple P012345678901A.",
    "workflows.onboarding.verifying_niu": "🔎 Vérification du NIU *{{enter_niu}}*...",
    "workflows.onboarding.niu_not_found": "Aucun contribuable ne correspond au NIU *{{enter_niu}}*.",
    "workflows.onboarding.confirm_manual_taxpayer": "Ce NIU correspond au contribuable suivant. Est-ce bien vous ?",
    "workflows.onboarding.complete_full": "🎉 Merci {{collect_name}} ! Votre profil est lié au NIU *{{link_taxpayer.taxpayer.niu}}*.",
    "workflows.onboarding.complete_partial": "🎉 Merci {{collect_name}} ! Votre profil est créé. Vous pourrez ajouter votre NIU plus tard.",
}

EN = {
    # Message frame
    "common.bot_header": "🤖 *Armelle* - Tax assistant",
    "common.subheader.step_progress": "Step {{current}}/{{total}}",
    "common.subheader.validation_error": "Input error",
    "common.subheader.error": "Incident",
    "common.footer.back_hint": "Type * to go back",
    "common.footer.retry": "Please try again",
    "common.footer.workflow_complete": "Type *help* to see what I can do",
    "common.footer.error_recovery": "Please try again in a few moments",

    # Generic outcomes
    "common.service_unavailable": "⏳ This service is temporarily unavailable. Please resend your message in a few moments.",
    "common.system_error": "😔 Sorry, something unexpected went wrong. Our team has been notified.",
    "common.version_conflict": "Your previous message is still being processed. Please wait and try again.",
    "common.workflow_complete": "✅ All done, thank you!",
    "common.back_not_allowed": "You cannot go back from this step.",
    "common.cancelled": "❌ Cancelled.",
    "common.no_active_workflow": "Nothing is in progress.",
    "common.language_changed": "🇬🇧 The language is now English.",
    "common.help_message": (
        "Available commands:\n"
        "• *back* or * : go back to the previous step\n"
        "• *cancel* : abandon the current process\n"
        "• *fr* / *en* : switch language\n"
        "• *help* : show this message"
    ),

    # Validation reasons
    "validation.required": "This field is required.",
    "validation.too_short": "At least {{min_length}} characters are required.",
    "validation.too_long": "At most {{max_length}} characters are allowed.",
    "validation.invalid_format": "The format is invalid.",
    "validation.out_of_range": "The value must be between {{min}} and {{max}}.",
    "validation.invalid_choice": "Invalid option. Reply with the number of one of the options.",

    # Onboarding workflow
    "workflows.onboarding.name": "Registration",
    "workflows.onboarding.collect_name": "Welcome! 👋 To get started, what is your full name?",
    "workflows.onboarding.searching_dgi": "🔎 Looking up your profile in the DGI registry, one moment...",
    "workflows.onboarding.confirm_single": "I found one taxpayer matching *{{collect_name}}*. Is this you?",
    "workflows.onboarding.select_multiple": "I found {{search_dgi.count}} taxpayers matching *{{collect_name}}*. Which one are you?",
    "workflows.onboarding.choice_not_me": "This is not me",
    "workflows.onboarding.choice_none": "None of these",
    "workflows.onboarding.too_many_results": "Your search returned too many results ({{search_dgi.count}}). Please enter your full name.",
    "workflows.onboarding.no_results": "I could not find any taxpayer named *{{collect_name}}*. What would you like to do?",
    "workflows.onboarding.dgi_error": "The DGI service is not responding right now. What would you like to do?",
    "workflows.onboarding.choice_retry_name": "Enter my name again",
    "workflows.onboarding.choice_manual_niu": "Enter my NIU",
    "workflows.onboarding.choice_skip": "Continue without a tax profile",
    "workflows.onboarding.enter_niu": "Enter your Unique Identification Number (NIU), for example P012345678901A.",
    "workflows.onboarding.verifying_niu": "🔎 Checking NIU *{{enter_niu}}*...",
    "workflows.onboarding.niu_not_found": "No taxpayer matches NIU *{{enter_niu}}*.",
    "workflows.onboarding.confirm_manual_taxpayer": "This NIU belongs to the following taxpayer. Is this you?",
    "workflows.onboarding.complete_full": "🎉 Thank you {{collect_name}}! Your profile is linked to NIU *{{link_taxpayer.taxpayer.niu}}*.",
    "workflows.onboarding.complete_partial": "🎉 Thank you {{collect_name}}! Your profile has been created. You can add your NIU later.",
}

STRINGS = {
    "fr": FR,
    "en": EN,
}
