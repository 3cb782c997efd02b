from eval.run_eval import build_payload, score


def test_keyword_score():
    assert score("Saint Louis University is in Baguio City", ["baguio", "saint louis"]) == 1.0
    assert score("Nothing relevant", ["baguio"]) == 0.0
    assert score("anything", []) == 0.0


def test_build_payload_matches_chat_contract():
    assert build_payload("hello", "ctx") == {
        "chatHistory": [{"role": "user", "parts": [{"text": "hello"}]}],
        "systemContext": "ctx",
    }
