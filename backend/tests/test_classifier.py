"""Tests for request intent classification."""

from deepview.services.classifier import Intent, IntentKeywords, RequestClassifier

classifier = RequestClassifier()


def _user(text, images=(), videos=()):
    if not images and not videos:
        return {"role": "user", "content": text}
    content = [{"type": "text", "text": text}]
    content += [{"type": "image_url", "image_url": {"url": url}} for url in images]
    content += [{"type": "video_url", "video_url": {"url": url}} for url in videos]
    return {"role": "user", "content": content}


def test_video_attachment_takes_precedence_over_generation_keywords():
    messages = [_user("generate a video of a cat", videos=["https://example.com/clip.mp4"])]
    assert classifier.classify(messages) == Intent.MULTIMODAL_ANALYSIS


def test_video_generation():
    assert classifier.classify([_user("Please generate a video of a sunset")]) == Intent.VIDEO_GENERATION
    assert classifier.classify([_user("Crea un vídeo de un perro corriendo")]) == Intent.VIDEO_GENERATION


def test_image_generation():
    assert classifier.classify([_user("Draw a picture of a lighthouse")]) == Intent.IMAGE_GENERATION
    assert classifier.classify([_user("Genera una imagen de un gato")]) == Intent.IMAGE_GENERATION


def test_generation_keywords_beat_image_attachment():
    messages = [_user("Create an animation from this", images=["https://example.com/a.png"])]
    assert classifier.classify(messages) == Intent.VIDEO_GENERATION


def test_image_attachment_is_analysis():
    messages = [_user("What is in this photo?", images=["data:image/png;base64,AAAA"])]
    assert classifier.classify(messages) == Intent.MULTIMODAL_ANALYSIS


def test_plain_chat():
    assert classifier.classify([_user("Hello there")]) == Intent.PLAIN_CHAT
    # A noun without a creation verb is not a generation request
    assert classifier.classify([_user("I watched a video yesterday")]) == Intent.PLAIN_CHAT


def test_only_latest_user_message_is_considered():
    messages = [
        _user("generate a video of a cat"),
        {"role": "assistant", "content": "Here it is"},
        _user("thanks!"),
    ]
    assert classifier.classify(messages) == Intent.PLAIN_CHAT


def test_matching_is_case_insensitive():
    assert classifier.is_video_request("GENERATE A VIDEO") == True
    assert classifier.is_image_request("CREATE AN IMAGE") == True


def test_custom_keywords():
    custom = RequestClassifier(
        IntentKeywords(video_verbs=["render"], image_verbs=["paint"], video_nouns=["clip"], image_nouns=["canvas"])
    )
    assert custom.classify([_user("render a clip")]) == Intent.VIDEO_GENERATION
    assert custom.classify([_user("paint a canvas")]) == Intent.IMAGE_GENERATION
    assert custom.classify([_user("generate a video")]) == Intent.PLAIN_CHAT


def test_no_user_message():
    assert classifier.classify([{"role": "assistant", "content": "hi"}]) == Intent.PLAIN_CHAT
